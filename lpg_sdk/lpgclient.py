# lpg_sdk/lpgclient.py
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from rich import print

DEFAULT_PREFIX = "/make-server-9f945771"
DEFAULT_SESSION_FILE = Path.home() / ".k4j_lpg" / "session.json"
LOW_STOCK_THRESHOLD = 20


class LPGApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


def is_low_stock(product: Dict[str, Any]) -> bool:
    threshold = product.get("lowStockThreshold")
    if threshold is None:
        threshold = LOW_STOCK_THRESHOLD
    return int(product.get("quantity", 0)) <= int(threshold)


class LPGClient:
    """
    One method per server endpoint. The access token from ``sign_in`` is kept
    on the client (and in ``session_file`` when given) and sent as a bearer
    token; without one the optional ``anon_key`` is sent instead.
    """

    def __init__(self, base_url: str = "http://localhost:8085", prefix: str = DEFAULT_PREFIX,
                 anon_key: Optional[str] = None, session_file: Optional[Path] = None,
                 timeout: int = 10, session=None):
        self.base_url = base_url.rstrip("/") + prefix
        self.anon_key = anon_key
        self.session_file = Path(session_file) if session_file else None
        self.session = session or requests.Session()
        self.timeout = timeout
        self.access_token: Optional[str] = self._load_token()

    # -----------------------
    # Token handling
    # -----------------------
    def _load_token(self) -> Optional[str]:
        if not self.session_file or not self.session_file.exists():
            return None
        try:
            return json.loads(self.session_file.read_text(encoding="utf-8")).get("accessToken")
        except (ValueError, OSError):
            return None

    def set_access_token(self, token: Optional[str]) -> None:
        self.access_token = token
        if not self.session_file:
            return
        if token:
            self.session_file.parent.mkdir(parents=True, exist_ok=True)
            self.session_file.write_text(json.dumps({"accessToken": token}), encoding="utf-8")
            self.session_file.chmod(0o600)
        else:
            self.session_file.unlink(missing_ok=True)

    def _headers(self, include_auth: bool = True) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.access_token if include_auth else None
        token = token or self.anon_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, path: str, include_auth: bool = True, **kwargs) -> Dict[str, Any]:
        r = self.session.request(method, f"{self.base_url}{path}", headers=self._headers(include_auth),
                                 timeout=self.timeout, **kwargs)
        try:
            data = r.json()
        except ValueError:
            data = {}
        if r.status_code >= 400:
            raise LPGApiError(r.status_code, data.get("error") or f"request to {path} failed")
        return data

    # -----------------------
    # Auth
    # -----------------------
    def sign_up(self, username: str, password: str, role: str) -> Dict[str, Any]:
        return self._request("POST", "/auth/signup", include_auth=False,
                             json={"username": username, "password": password, "role": role})

    def sign_in(self, username: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/auth/signin", include_auth=False,
                             json={"username": username, "password": password})
        if data.get("accessToken"):
            self.set_access_token(data["accessToken"])
        return data

    def check_session(self) -> Optional[Dict[str, Any]]:
        """Current user, or None (and the token dropped) when the session is gone."""
        if not self.access_token:
            return None
        try:
            return self._request("GET", "/auth/session")["user"]
        except (LPGApiError, requests.RequestException):
            self.set_access_token(None)
            return None

    def sign_out(self) -> None:
        try:
            self._request("POST", "/auth/signout")
        except (LPGApiError, requests.RequestException):
            pass
        finally:
            self.set_access_token(None)

    # -----------------------
    # Products
    # -----------------------
    def get_products(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/products", include_auth=False)["products"]

    def add_product(self, product: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/products", json=product)["product"]

    def update_product(self, product_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/products/{product_id}", json=updates)["product"]

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/products/{product_id}")

    # -----------------------
    # Users (admin)
    # -----------------------
    def get_users(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/users")["users"]

    def update_user(self, user_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/users/{user_id}", json=updates)["user"]

    def delete_user(self, user_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/users/{user_id}")

    # -----------------------
    # Setup
    # -----------------------
    def initialize_database(self) -> Dict[str, Any]:
        return self._request("POST", "/init", include_auth=False)

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health", include_auth=False)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="K4J LPG Center API client")
    parser.add_argument("--base-url", default="http://127.0.0.1:8085")
    parser.add_argument("--prefix", default=DEFAULT_PREFIX)
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("health", help="Check the API is up")
    subparsers.add_parser("init", help="Seed default users and products")

    si = subparsers.add_parser("signin", help="Sign in and remember the session")
    si.add_argument("--username", required=True)
    si.add_argument("--password", required=True)

    su = subparsers.add_parser("signup", help="Create a user")
    su.add_argument("--username", required=True)
    su.add_argument("--password", required=True)
    su.add_argument("--role", default="staff")

    subparsers.add_parser("session", help="Show the signed-in user")
    subparsers.add_parser("signout", help="Sign out and forget the session")

    subparsers.add_parser("products", help="List all products")

    ap = subparsers.add_parser("add-product", help="Add a product (admin)")
    ap.add_argument("--name", required=True)
    ap.add_argument("--category", required=True)
    ap.add_argument("--quantity", type=int, default=0)
    ap.add_argument("--price", type=float, default=0.0)

    up = subparsers.add_parser("update-product", help="Update product fields")
    up.add_argument("--product-id", required=True)
    up.add_argument("--name")
    up.add_argument("--category")
    up.add_argument("--quantity", type=int)
    up.add_argument("--price", type=float)

    dp = subparsers.add_parser("delete-product", help="Delete a product (admin)")
    dp.add_argument("--product-id", required=True)

    subparsers.add_parser("users", help="List users (admin)")

    uu = subparsers.add_parser("update-user", help="Update a user (admin)")
    uu.add_argument("--user-id", required=True)
    uu.add_argument("--username")
    uu.add_argument("--role")

    du = subparsers.add_parser("delete-user", help="Delete a user (admin)")
    du.add_argument("--user-id", required=True)

    args = parser.parse_args()
    c = LPGClient(base_url=args.base_url, prefix=args.prefix, session_file=DEFAULT_SESSION_FILE)

    try:
        if args.command == "health":
            print(c.health())
        elif args.command == "init":
            print(c.initialize_database())
        elif args.command == "signin":
            print(c.sign_in(args.username, args.password)["user"])
        elif args.command == "signup":
            print(c.sign_up(args.username, args.password, args.role))
        elif args.command == "session":
            print(c.check_session() or "[yellow]not signed in[/yellow]")
        elif args.command == "signout":
            c.sign_out()
            print("[green]signed out[/green]")
        elif args.command == "products":
            print(c.get_products())
        elif args.command == "add-product":
            print(c.add_product({"name": args.name, "category": args.category,
                                 "quantity": args.quantity, "price": args.price}))
        elif args.command == "update-product":
            fields = {k: getattr(args, k) for k in ("name", "category", "quantity", "price")}
            print(c.update_product(args.product_id, {k: v for k, v in fields.items() if v is not None}))
        elif args.command == "delete-product":
            print(c.delete_product(args.product_id))
        elif args.command == "users":
            print(c.get_users())
        elif args.command == "update-user":
            fields = {"username": args.username, "role": args.role}
            print(c.update_user(args.user_id, {k: v for k, v in fields.items() if v is not None}))
        elif args.command == "delete-user":
            print(c.delete_user(args.user_id))
    except LPGApiError as e:
        print(f"[red]{e}[/red]")
        raise SystemExit(1)
