"""
Steward: local-first model routing for a personal assistant.

Routes a natural-language task to a local, containerized or cloud model
based on privacy sensitivity, time of day, cognitive state and task
characteristics, and learns from the outcomes.

Implements:
- Privacy analysis with a hard local-only guarantee
- Local capability and cloud override scoring
- Decision composition with local-first fallback chains
- Performance recording and calibration insights
"""

__version__ = "0.1.0"

# Configuration
from .config import (
    CalibrationConfig,
    CloudModelConfig,
    LocalModelConfig,
    PrivacyConfig,
    RoutingConfig,
    ScoringConfig,
    default_config,
)

# Routing pipeline
from .capability import LocalCapabilityEvaluator
from .cloud_override import CloudOverrideEvaluator
from .composer import DecisionComposer
from .fallback import FallbackChainBuilder
from .privacy import PrivacyAnalyzer
from .router import LocalFirstRouter
from .validator import DecisionValidator

# Models
from .model_registry import (
    LOCAL_MODEL_MARKERS,
    MODEL_REGISTRY,
    ModelInfo,
    ModelLocation,
    Provider,
    is_local_model,
    resolve_model,
)

# Calibration loop
from .performance import Insight, InsightCache, Outcome, PerformanceRecorder, ScoringHints
from .storage import InMemoryRecordStore, PerformanceRecord, RecordStore, SQLiteRecordStore

# Invocation
from .transport import (
    AllModelsFailedError,
    CloudModelClient,
    ErrorCode,
    FallbackExecutor,
    InvocationError,
    LocalModelClient,
    ModelDispatcher,
    ModelResponse,
)

# Types
from .types import (
    BaselineSelection,
    CapabilityAssessment,
    Classification,
    CognitiveState,
    FallbackBehavior,
    InvalidInputError,
    Level,
    OverrideEvaluation,
    PrivacyAnalysis,
    PrivacyLevel,
    PrivacyViolationError,
    RoutedTask,
    RoutingDecision,
    RoutingStrategy,
    StewardError,
    TaskType,
    TimeContext,
    UncertaintyLevel,
    UserProfile,
    ValidationResult,
)

__all__ = [
    # Configuration
    "CalibrationConfig",
    "CloudModelConfig",
    "LocalModelConfig",
    "PrivacyConfig",
    "RoutingConfig",
    "ScoringConfig",
    "default_config",
    # Routing pipeline
    "DecisionComposer",
    "DecisionValidator",
    "CloudOverrideEvaluator",
    "FallbackChainBuilder",
    "LocalCapabilityEvaluator",
    "LocalFirstRouter",
    "PrivacyAnalyzer",
    # Models
    "LOCAL_MODEL_MARKERS",
    "MODEL_REGISTRY",
    "ModelInfo",
    "ModelLocation",
    "Provider",
    "is_local_model",
    "resolve_model",
    # Calibration loop
    "InMemoryRecordStore",
    "Insight",
    "InsightCache",
    "Outcome",
    "PerformanceRecord",
    "PerformanceRecorder",
    "RecordStore",
    "SQLiteRecordStore",
    "ScoringHints",
    # Invocation
    "AllModelsFailedError",
    "CloudModelClient",
    "ErrorCode",
    "FallbackExecutor",
    "InvocationError",
    "LocalModelClient",
    "ModelDispatcher",
    "ModelResponse",
    # Types
    "BaselineSelection",
    "CapabilityAssessment",
    "Classification",
    "CognitiveState",
    "FallbackBehavior",
    "InvalidInputError",
    "Level",
    "OverrideEvaluation",
    "PrivacyAnalysis",
    "PrivacyLevel",
    "PrivacyViolationError",
    "RoutedTask",
    "RoutingDecision",
    "RoutingStrategy",
    "StewardError",
    "TaskType",
    "TimeContext",
    "UncertaintyLevel",
    "UserProfile",
    "ValidationResult",
]
