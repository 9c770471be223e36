"""Supabase repository for the signed-in user's profile."""

from dataclasses import dataclass

from supabase import Client

from meal_tracker.services.users import ProfileRepository


@dataclass
class SupabaseProfileRepository(ProfileRepository):
    """Supabase implementation for profile lookups.

    The user comes from the client's auth session. ``fallback_user_id`` is
    used when the client has no session, which is the case for service
    deployments configured with a fixed user.
    """

    client: Client
    fallback_user_id: str | None = None

    def get_current_user_id(self) -> str | None:
        """Return the authenticated user's id."""
        session = self.client.auth.get_session()
        if session is not None and session.user is not None:
            return session.user.id
        return self.fallback_user_id

    def get_access_token(self) -> str | None:
        """Return the session's access token, if signed in."""
        session = self.client.auth.get_session()
        if session is None:
            return None
        return session.access_token

    def get_target_calories(self, user_id: str) -> float | None:
        """Return the stored daily calorie target for a user."""
        response = (
            self.client.table("user_profiles")
            .select("target_calories")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        target = response.data[0].get("target_calories")
        if target is None:
            return None
        return float(target)
