"""Thin JSON client for the storefront API.

Works over any httpx-compatible client, so the same code drives a live
server (``httpx.Client(base_url=...)``) or the app in-process
(``fastapi.testclient.TestClient``).
"""
from typing import Any, Dict, List, Optional

import httpx


class ApiError(Exception):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class StorefrontClient:
    def __init__(self, http: httpx.Client):
        self.http = http
        self.token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None

    def _request(self, method: str, path: str, **kwargs) -> Any:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        r = self.http.request(method, path, headers=headers, **kwargs)
        if r.status_code >= 400:
            try:
                detail = r.json().get("detail", r.text)
            except ValueError:
                detail = r.text
            raise ApiError(r.status_code, str(detail))
        return r.json()

    # auth
    def register(self, username: str, password: str, **profile) -> Dict[str, Any]:
        data = self._request("POST", "/api/register", json={"username": username, "password": password, **profile})
        self.token, self.user = data["token"], data["user"]
        return self.user

    def login(self, username: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/api/login", json={"username": username, "password": password})
        self.token, self.user = data["token"], data["user"]
        return self.user

    def logout(self) -> None:
        try:
            self._request("POST", "/api/logout")
        finally:
            self.token = None
            self.user = None

    def current_user(self) -> Optional[Dict[str, Any]]:
        try:
            self.user = self._request("GET", "/api/user")
        except ApiError as e:
            if e.status_code != 401:
                raise
            self.user = None
        return self.user

    # catalog and orders
    def products(self, category: Optional[str] = None, q: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {k: v for k, v in (("category", category), ("q", q)) if v}
        return self._request("GET", "/api/products", params=params)

    def place_order(self, order: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/orders", json=order)

    def track(self, order_number: str) -> Dict[str, Any]:
        return self._request("GET", f"/api/track/{order_number}")

    # cart
    def get_cart(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/cart").get("items", [])

    def push_cart(self, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self._request("POST", "/api/cart", json={"items": items})
