from seance_backend.schemas.auth import AuthResponse, Credentials, CurrentUser, LogoutResponse, UserSummary
from seance_backend.schemas.billing import SubscriptionStatusResponse
from seance_backend.schemas.deploy import DeployedFile, DeployFile, DeployRequest, DeployResponse, ErrorResponse
from seance_backend.schemas.releases import DownloadEligibility, LatestDownload, ReleaseManifest

__all__ = [
    "AuthResponse",
    "Credentials",
    "CurrentUser",
    "DeployFile",
    "DeployRequest",
    "DeployResponse",
    "DeployedFile",
    "DownloadEligibility",
    "ErrorResponse",
    "LatestDownload",
    "LogoutResponse",
    "ReleaseManifest",
    "SubscriptionStatusResponse",
    "UserSummary",
]
