# lpg_api/seed.py
# First-run data written by POST /init.

SEED_ACCOUNTS = [
    {"username": "admin", "password": "admin123", "role": "admin"},
    {"username": "staff", "password": "staff123", "role": "staff"},
]

SEED_PRODUCTS = [
    {"name": "11kg Brent Gas", "category": "Gas Tank", "quantity": 15, "price": 950.00},
    {"name": "22kg Superkalan Gas", "category": "Gas Tank", "quantity": 25, "price": 1850.00},
    {"name": "2.7kg Superkalan", "category": "Gas Tank", "quantity": 18, "price": 450.00},
    {"name": "LPG Hose", "category": "Accessories", "quantity": 50, "price": 150.00},
    {"name": "LPG Regulator", "category": "Accessories", "quantity": 35, "price": 280.00},
    {"name": "Gas Stove Burner", "category": "Accessories", "quantity": 20, "price": 320.00},
    {"name": "O-ring", "category": "Accessories", "quantity": 100, "price": 25.00},
    {"name": "Gas Clamp", "category": "Accessories", "quantity": 75, "price": 35.00},
    {"name": "Double Burner Stove", "category": "Stove", "quantity": 12, "price": 1850.00},
    {"name": "Megakalan", "category": "Stove", "quantity": 8, "price": 2500.00},
]
