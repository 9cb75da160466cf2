from enum import Enum, IntEnum


class ModelName(str, Enum):
    DINA_HO = "DINA_HO"
    DINA_HO_RT_SEP = "DINA_HO_RT_sep"
    DINA_HO_RT_JOINT = "DINA_HO_RT_joint"
    RRUM_INDEPT = "rRUM_indept"
    NIDA_INDEPT = "NIDA_indept"
    DINA_FOHM = "DINA_FOHM"


class DecodingMethod(str, Enum):
    EAP = "eap"
    MAP = "map"


class GVersion(IntEnum):
    """Fluency covariate used by the response-time model."""

    MASTERY = 1
    PRACTICE = 2
    TIME_BLOCK = 3
