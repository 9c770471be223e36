"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import create_client

from meal_tracker.adapters.http_analysis_client import HttpxAnalysisClient
from meal_tracker.adapters.json_store import json_repositories
from meal_tracker.adapters.logging_notification_sink import LoggingNotificationSink
from meal_tracker.adapters.openai_transcription_client import (
    OpenAITranscriptionClient,
)
from meal_tracker.adapters.sounddevice_recorder import SoundDeviceRecorder
from meal_tracker.adapters.supabase_profile_repository import (
    SupabaseProfileRepository,
)
from meal_tracker.config import Settings
from meal_tracker.services.aggregates import AggregateEngine
from meal_tracker.services.audio import AudioCaptureSession
from meal_tracker.services.clock import Clock, SystemClock
from meal_tracker.services.dispatcher import DurableTaskDispatcher
from meal_tracker.services.events import EventChannel
from meal_tracker.services.meals import MealStore
from meal_tracker.services.notifications import MealNotifier
from meal_tracker.services.processing import MealLogService, VoiceMealFlow
from meal_tracker.services.recovery import RecoveryManager
from meal_tracker.services.transcription import TranscriptionService
from meal_tracker.services.users import ProfileService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    clock: Clock
    events: EventChannel
    meal_store: MealStore
    dispatcher: DurableTaskDispatcher
    recovery_manager: RecoveryManager
    profile_service: ProfileService
    meal_log_service: MealLogService
    voice_flow: VoiceMealFlow
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    clock = SystemClock(resolved_settings.timezone)
    events = EventChannel()
    meal_repository, totals_repository, task_repository = json_repositories(
        resolved_settings.data_dir
    )

    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_anon_key
    )
    profile_repository = SupabaseProfileRepository(
        supabase_client, fallback_user_id=resolved_settings.user_id
    )
    profile_service = ProfileService(
        profile_repository,
        default_goal_calories=resolved_settings.default_goal_calories,
    )

    aggregates = AggregateEngine(
        totals_repository,
        clock,
        default_goal_calories=resolved_settings.default_goal_calories,
    )
    meal_store = MealStore(meal_repository, aggregates, events, clock)
    analysis_client = HttpxAnalysisClient.create(
        url=resolved_settings.analysis_url,
        api_key=resolved_settings.supabase_anon_key,
        timeout=resolved_settings.analysis_timeout_seconds,
        access_token=profile_repository.get_access_token,
    )
    dispatcher = DurableTaskDispatcher(
        client=analysis_client,
        tasks=task_repository,
        store=meal_store,
        notifier=MealNotifier(LoggingNotificationSink()),
        clock=clock,
        max_task_age=timedelta(
            seconds=resolved_settings.pending_task_max_age_seconds
        ),
    )
    recovery_manager = RecoveryManager(meal_store, dispatcher)
    meal_log_service = MealLogService(meal_store, dispatcher, profile_service)

    transcription_client = None
    if resolved_settings.openai_api_key:
        transcription_client = OpenAITranscriptionClient.create(
            resolved_settings.openai_api_key,
            model=resolved_settings.transcription_model,
        )
    capture = AudioCaptureSession(
        SoundDeviceRecorder(sample_rate=resolved_settings.sample_rate),
        silence_threshold=resolved_settings.silence_threshold,
        sample_interval=resolved_settings.level_sample_interval_seconds,
    )
    voice_flow = VoiceMealFlow(
        capture=capture,
        transcriber=TranscriptionService(transcription_client),
        meal_log=meal_log_service,
    )

    async def close_resources() -> None:
        await voice_flow.cancel()
        await dispatcher.aclose()
        await analysis_client.close()
        if transcription_client is not None:
            await transcription_client.close()

    return AppContainer(
        settings=resolved_settings,
        clock=clock,
        events=events,
        meal_store=meal_store,
        dispatcher=dispatcher,
        recovery_manager=recovery_manager,
        profile_service=profile_service,
        meal_log_service=meal_log_service,
        voice_flow=voice_flow,
        close_resources=close_resources,
    )
