"""Supabase Auth admin API client (service-role key) used to provision customer accounts"""

import logging
from typing import Optional

import httpx

from ... import config

logger = logging.getLogger(__name__)


class AccountProvisioningError(Exception):
    pass


class SupabaseAuthAdminClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        service_role_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.base_url = (base_url or config.SUPABASE_URL or "").rstrip("/")
        self.service_role_key = service_role_key or config.SUPABASE_SERVICE_ROLE_KEY
        self.transport = transport
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.service_role_key)

    def _client(self) -> httpx.AsyncClient:
        if not self.is_configured:
            raise AccountProvisioningError("Supabase admin API not configured")
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/auth/v1",
            headers={
                "apikey": self.service_role_key,
                "Authorization": f"Bearer {self.service_role_key}",
            },
            timeout=self.timeout,
            transport=self.transport,
        )

    async def find_user_by_email(self, email: str, per_page: int = 1000) -> Optional[dict]:
        """Page through auth users looking for an exact (case-insensitive) email match"""
        email = email.lower()
        page = 1
        async with self._client() as client:
            while True:
                response = await client.get("/admin/users", params={"page": page, "per_page": per_page})
                if response.status_code != 200:
                    raise AccountProvisioningError(
                        f"Listing auth users failed: HTTP {response.status_code}"
                    )
                users = response.json().get("users", [])
                for user in users:
                    if (user.get("email") or "").lower() == email:
                        return user
                if len(users) < per_page:
                    return None
                page += 1

    async def create_user(self, email: str, full_name: Optional[str], phone: Optional[str]) -> dict:
        """
        Create a pre-confirmed auth identity (the customer typed the address themselves).

        Raises:
            AccountProvisioningError: request failed, or the email is already registered
        """
        payload = {
            "email": email,
            "email_confirm": True,
            "user_metadata": {"full_name": full_name, "phone": phone},
        }
        async with self._client() as client:
            response = await client.post("/admin/users", json=payload)

        if response.status_code in (200, 201):
            user = response.json()
            logger.info(f"✅ Auth identity created for {email}: {user.get('id')}")
            return user

        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("msg") or body.get("message") or body.get("error_description") or response.text
        raise AccountProvisioningError(f"Creating auth user failed: HTTP {response.status_code} {message}")


def get_auth_admin_client() -> SupabaseAuthAdminClient:
    """Dependency injection for the Supabase admin client"""
    return SupabaseAuthAdminClient()
