#!/usr/bin/env python
from lpg_sdk.lpgclient import LPGClient, LPGApiError, is_low_stock

def main():
    c = LPGClient(base_url="http://127.0.0.1:8085")

    print("Checking the API...")
    print(c.health())

    # -----------------------------
    # First-run seed (no-op after the first call)
    # -----------------------------
    print("\nInitializing database...")
    print(c.initialize_database())

    # -----------------------------
    # Sign in as the seeded admin
    # -----------------------------
    print("\nSigning in as admin...")
    resp = c.sign_in("admin", "admin123")
    print(resp["user"])

    # -----------------------------
    # Inventory
    # -----------------------------
    print("\nListing products...")
    products = c.get_products()
    for p in products:
        flag = "  <- low stock" if is_low_stock(p) else ""
        print(f"{p['name']:<24} {p['category']:<12} qty={p['quantity']:<4} price={p['price']}{flag}")

    print("\nAdding a product...")
    hose = c.add_product({"name": "Demo Hose", "category": "Accessories", "quantity": 5, "price": 175})
    print(hose)

    print("\nRestocking it...")
    print(c.update_product(hose["id"], {"quantity": 40}))

    print("\nDeleting it...")
    print(c.delete_product(hose["id"]))

    # -----------------------------
    # Users
    # -----------------------------
    print("\nListing users...")
    for u in c.get_users():
        print(f"{u['username']:<12} {u['role']:<6} {u['id']}")

    # -----------------------------
    # Staff cannot add products
    # -----------------------------
    print("\nSigning in as staff and trying an admin action...")
    c.sign_in("staff", "staff123")
    try:
        c.add_product({"name": "Nope", "category": "Stove"})
    except LPGApiError as e:
        print(f"Rejected as expected: {e}")

    print("\nSigning out...")
    c.sign_out()
    print("Session:", c.check_session())

if __name__ == "__main__":
    main()
