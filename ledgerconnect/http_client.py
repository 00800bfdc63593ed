"""
HTTP Client for Ledger Connect
Handles communication with a remote Ledger Connect API
"""

import requests
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from ledgerconnect.config import get_settings
from ledgerconnect.errors import (
    AuthError,
    InvariantViolation,
    LedgerError,
    NotFoundError,
    ValidationError,
)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class LedgerClient:
    """
    HTTP client for a Ledger Connect API server.

    Request bodies and query strings are built from plain arguments and
    responses come back as parsed JSON. API errors are raised as the same
    exceptions the local SDK raises (ValidationError, NotFoundError, AuthError,
    InvariantViolation).

    Usage Example:
        ```python
        with LedgerClient("http://localhost:8000") as client:
            customer = client.register_customer("Juan")
            client.create_debt(customer["customer_id"], "Rice", amount=50000)
            balance = client.project_balance(customer["customer_id"])
            print(balance["closing"])
        ```
    """

    def __init__(self, base_url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: Optional[float] = None, prefix: Optional[str] = None):
        """
        Initialize the client.

        Args:
            base_url: Server URL (default: settings.api_base_url)
            api_key: Sent as a Bearer token if given
            timeout: Seconds per request (default: settings.request_timeout)
            prefix: Route prefix (default: settings.api_prefix)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip('/')
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.prefix = prefix if prefix is not None else settings.api_prefix
        self.session = requests.Session()

        # Set default headers
        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'LedgerConnect-Client/1.0'
        })
        if api_key:
            self.session.headers['Authorization'] = f'Bearer {api_key}'

    def _make_request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Make an HTTP request to the API.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            endpoint: Path below the route prefix (e.g., '/customers')
            data: Request body (None values are dropped)
            params: Query parameters (None values are dropped)

        Returns:
            Parsed JSON response

        Raises:
            LedgerError: Subclass matching the API's error code
            requests.HTTPError: For other HTTP failures
            TimeoutError: If the request timed out
            ConnectionError: If the server could not be reached
        """
        url = f"{self.base_url}{self.prefix}{endpoint}"
        if data is not None:
            data = {k: v for k, v in data.items() if v is not None}
        if params is not None:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = self.session.request(
                method=method,
                url=url,
                json=data,
                params=params,
                timeout=self.timeout
            )

            # Raise exception for HTTP errors
            response.raise_for_status()

            # Parse JSON response
            return response.json()

        except requests.exceptions.HTTPError as e:
            translated = self._translate_error(e)
            if translated is e:
                raise
            raise translated from e

        except requests.exceptions.Timeout:
            raise TimeoutError(f"Request to {url} timed out")

        except requests.exceptions.ConnectionError:
            raise ConnectionError(f"Failed to connect to {url}. Is the server running?")

    @staticmethod
    def _translate_error(error: requests.HTTPError) -> Exception:
        response = error.response
        try:
            detail = response.json().get('detail')
        except (ValueError, AttributeError):
            return error

        if isinstance(detail, dict):
            code = detail.get('error_code')
            message = detail.get('message', str(error))
            if code == 'VALIDATION_ERROR':
                return ValidationError(message, field=detail.get('field'))
            if code == 'NOT_FOUND':
                return NotFoundError(message)
            if code in ('AUTH_FAILED', 'NOT_AUTHORIZED'):
                return AuthError(message, error_code=code)
            if code == 'INVARIANT_VIOLATION':
                return InvariantViolation(message)
            return LedgerError(message, error_code=code)

        # FastAPI's own errors: plain-text 404s and request validation lists
        if response.status_code == 404:
            return NotFoundError(str(detail))
        if response.status_code == 422 and isinstance(detail, list) and detail:
            first = detail[0]
            field = ".".join(str(part) for part in first.get('loc', ())[1:]) or None
            return ValidationError(first.get('msg', 'Invalid request'), field=field)
        return error

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Make a GET request."""
        return self._make_request('GET', endpoint, params=params)

    def post(self, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Any:
        """Make a POST request."""
        return self._make_request('POST', endpoint, data=data)

    def patch(self, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Any:
        """Make a PATCH request."""
        return self._make_request('PATCH', endpoint, data=data)

    def delete(self, endpoint: str) -> Any:
        """Make a DELETE request."""
        return self._make_request('DELETE', endpoint)

    def health(self) -> Dict[str, Any]:
        """Check the server is up. Not under the route prefix."""
        response = self.session.get(f"{self.base_url}/health", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    # ========== Customers ==========

    def register_customer(self, name: str, phone: str = "", customer_id: Optional[str] = None,
                          role: str = "customer", address: Optional[str] = None,
                          email: Optional[str] = None,
                          password: Optional[str] = None) -> Dict[str, Any]:
        return self.post('/customers', data={
            'name': name,
            'phone': phone,
            'customer_id': customer_id,
            'role': role,
            'address': address,
            'email': email,
            'password': password,
        })

    def get_customer(self, customer_id: str) -> Dict[str, Any]:
        return self.get(f'/customers/{customer_id}')

    def list_customers(self) -> List[Dict[str, Any]]:
        return self.get('/customers')

    def update_customer(self, customer_id: str, /, **updates: Any) -> Dict[str, Any]:
        return self.patch(f'/customers/{customer_id}', data=updates)

    def delete_customer(self, customer_id: str) -> bool:
        return self.delete(f'/customers/{customer_id}').get('deleted', False)

    # ========== Products ==========

    def add_product(self, name: str, price: int, category: str = "General",
                    product_id: Optional[str] = None, cost: int = 0,
                    stock: int = 0) -> Dict[str, Any]:
        return self.post('/products', data={
            'product_id': product_id,
            'name': name,
            'category': category,
            'price': price,
            'cost': cost,
            'stock': stock,
        })

    def list_products(self) -> List[Dict[str, Any]]:
        return self.get('/products')

    # ========== Debts & Repayments ==========

    def create_debt(
        self,
        customer_id: str,
        category: str,
        amount: Optional[int] = None,
        items: Optional[List[Dict[str, Any]]] = None,
        created_at: Optional[datetime] = None,
        note: Optional[str] = None,
        order_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create a debt.

        Returns:
            Dict with event_id, state, history and revision

        Example:
            ```python
            result = client.create_debt(
                "c1", "Rice",
                items=[{"product_id": "rice", "product_name": "Rice 5kg",
                        "quantity": 2, "price": 25000}],
            )
            print(result['event_id'], result['amount'])
            ```
        """
        return self.post(f'/customers/{customer_id}/debts', data={
            'category': category,
            'amount': amount,
            'items': items,
            'created_at': _iso(created_at),
            'note': note,
            'order_id': order_id,
        })

    def charge_products(self, customer_id: str, quantities: Mapping[str, int],
                        created_at: Optional[datetime] = None,
                        category_overrides: Optional[Mapping[str, str]] = None,
                        order_id: Optional[str] = None,
                        note: Optional[str] = None) -> Dict[str, Any]:
        """Charge catalog products; the server creates one debt per category."""
        return self.post(f'/customers/{customer_id}/orders', data={
            'quantities': dict(quantities),
            'created_at': _iso(created_at),
            'category_overrides': dict(category_overrides) if category_overrides else None,
            'order_id': order_id,
            'note': note,
        })

    def create_repayment(self, customer_id: str, category: str, amount: int,
                         timestamp: Optional[datetime] = None,
                         method: Optional[str] = None) -> Dict[str, Any]:
        return self.post(f'/customers/{customer_id}/repayments', data={
            'category': category,
            'amount': amount,
            'timestamp': _iso(timestamp),
            'method': method,
        })

    def reassign_category(self, event_id: str, kind: str, category: str,
                          acting_user_id: str) -> Dict[str, Any]:
        """Move an event to another category. ``acting_user_id`` must be an admin."""
        return self.post(f'/events/{event_id}/category', data={
            'kind': kind,
            'category': category,
            'acting_user_id': acting_user_id,
        })

    def delete_event(self, event_id: str, kind: str, password: str,
                     acting_user_id: str) -> Dict[str, Any]:
        """Delete an event after the server re-checks ``password``."""
        return self.post(f'/events/{event_id}/delete', data={
            'kind': kind,
            'password': password,
            'acting_user_id': acting_user_id,
        })

    # ========== Queries ==========

    def list_events(self, customer_id: str) -> List[Dict[str, Any]]:
        return self.get(f'/customers/{customer_id}/events')

    def project_balance(self, customer_id: str, category: Optional[str] = None,
                        as_of: Optional[date] = None, newest_first: bool = False,
                        search: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch a balance projection.

        Example:
            ```python
            p = client.project_balance("c1", category="Rice", as_of=date(2024, 1, 6))
            print(p['opening'], p['closing'])
            for line in p['lines']:
                print(line['description'], line['running_balance'])
            ```
        """
        return self.get(f'/customers/{customer_id}/balance', params={
            'category': category,
            'as_of': _iso(as_of),
            'newest_first': 'true' if newest_first else None,
            'search': search,
        })

    def list_categories(self, customer_id: str) -> Dict[str, Any]:
        return self.get(f'/customers/{customer_id}/categories')

    def get_statement(self, customer_id: str, on: Optional[date] = None) -> Dict[str, Any]:
        return self.get(f'/customers/{customer_id}/statement', params={'on': _iso(on)})

    def get_summary(self, on: Optional[date] = None) -> Dict[str, Any]:
        return self.get('/summary', params={'on': _iso(on)})

    def get_debtors(self, on: Optional[date] = None) -> List[Dict[str, Any]]:
        return self.get('/debtors', params={'on': _iso(on)})

    def close(self):
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close session."""
        self.close()
