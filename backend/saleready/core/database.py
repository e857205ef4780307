from typing import Optional

from supabase import create_client, Client
from saleready.core.config import settings
from saleready.core.exceptions import DatabaseError
import logging

logger = logging.getLogger(__name__)


class SupabaseService:
    def __init__(self):
        self.client: Optional[Client] = None

    def initialize(self) -> Optional[Client]:
        supabase_url = settings.SUPABASE_URL
        supabase_key = settings.SUPABASE_SERVICE_ROLE_KEY

        if not supabase_url or not supabase_key:
            logger.warning("Supabase URL or service role key not configured")
            return None

        try:
            self.client = create_client(supabase_url, supabase_key)
            logger.info("Supabase client initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize Supabase client: {e}")
            self.client = None
        return self.client

    def get_client(self) -> Client:
        if not self.client:
            self.initialize()
        if not self.client:
            raise DatabaseError("Supabase client is not configured", operation="connect")
        return self.client

    def is_configured(self) -> bool:
        try:
            self.get_client()
            return True
        except DatabaseError:
            return False

    def set_client(self, client: Optional[Client]) -> None:
        """Swap the underlying client (workers and tests inject their own)."""
        self.client = client


supabase_service = SupabaseService()
