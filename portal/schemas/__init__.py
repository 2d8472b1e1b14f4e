from portal.schemas.common import (
    ActionButtonOut,
    ActionsOut,
    ActivityOut,
    Actor,
    ApiEnvelope,
    ApiError,
    ApprovalSettingsUpdate,
    ClientCreate,
    ClientOut,
    ContentCreate,
    ContentListItemOut,
    ContentOut,
    FeedbackOut,
    ReviewRoundCheckOut,
    StatusHistoryEntryOut,
    TransitionCompleted,
    TransitionRequest,
)

__all__ = [
    "ActionButtonOut",
    "ActionsOut",
    "ActivityOut",
    "Actor",
    "ApiEnvelope",
    "ApiError",
    "ApprovalSettingsUpdate",
    "ClientCreate",
    "ClientOut",
    "ContentCreate",
    "ContentListItemOut",
    "ContentOut",
    "FeedbackOut",
    "ReviewRoundCheckOut",
    "StatusHistoryEntryOut",
    "TransitionCompleted",
    "TransitionRequest",
]
