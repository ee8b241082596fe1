"""
Lazily-created Supabase client shared by the services.

Only the service-role client is used: every query is scoped by the caller's
email in application code, and the atomic quota, like and promotion
operations run as SQL functions over RPC.
"""
import logging
from typing import Optional

from supabase import Client, ClientOptions, create_client

from .config import settings

logger = logging.getLogger(__name__)


class SupabaseClient:

    def __init__(self):
        self._service_client: Optional[Client] = None

    @property
    def service_client(self) -> Client:
        if self._service_client is None:
            options = ClientOptions(
                postgrest_client_timeout=settings.supabase_timeout_seconds,
                storage_client_timeout=int(settings.supabase_timeout_seconds),
                auto_refresh_token=False,
                persist_session=False,
            )
            self._service_client = create_client(
                settings.supabase_url,
                settings.supabase_service_role_key,
                options=options,
            )
            logger.info("Supabase service client created")
        return self._service_client


supabase_client = SupabaseClient()
