from .contracts import ContractViewSet  # noqa: F401
from .resolution import ResolutionTicketViewSet  # noqa: F401
from .tickets import CancelTicketViewSet, ChangeTicketViewSet, RevisionTicketViewSet  # noqa: F401
from .uploads import (  # noqa: F401
    FinalUploadViewSet,
    MilestoneUploadViewSet,
    ProgressUploadViewSet,
    RevisionUploadViewSet,
)
