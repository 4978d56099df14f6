from .base import LifecycleModel, PartyRole, ResponseDecision  # noqa: F401
from .contract import (  # noqa: F401
    CHANGEABLE_FIELDS,
    CancellationFeeKind,
    Contract,
    ContractFlow,
    ContractStatus,
    Milestone,
    MilestoneStatus,
    RevisionType,
)
from .tickets import (  # noqa: F401
    CancelTicket,
    CancelTicketStatus,
    ChangeTicket,
    ChangeTicketStatus,
    RevisionTicket,
    RevisionTicketStatus,
)
from .uploads import (  # noqa: F401
    FinalUpload,
    ProgressUploadMilestone,
    ProgressUploadStandard,
    RevisionUpload,
    UploadStatus,
)
from .resolution import (  # noqa: F401
    ResolutionDecision,
    ResolutionStatus,
    ResolutionTargetType,
    ResolutionTicket,
)
