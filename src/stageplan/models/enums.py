from enum import Enum


class FileType(str, Enum):
    DATA = "data"
    EXECUTABLE = "executable"
    CHECKPOINT = "checkpoint"


class TransferMode(str, Enum):
    ALWAYS = "always"
    NEVER = "never"
    OPTIONAL = "optional"


class JobKind(str, Enum):
    ORDINARY = "ordinary"
    NESTED_PLANNED = "nested_planned"    # wraps an already planned workflow
    NESTED_ABSTRACT = "nested_abstract"  # wraps an abstract workflow to plan at runtime


class DirectoryType(str, Enum):
    SHARED_SCRATCH = "shared_scratch"
    SHARED_STORAGE = "shared_storage"


class Operation(str, Enum):
    GET = "get"
    PUT = "put"
    ALL = "all"

    @classmethod
    def for_get(cls) -> tuple["Operation", ...]:
        return (cls.GET, cls.ALL)

    @classmethod
    def for_put(cls) -> tuple["Operation", ...]:
        return (cls.PUT, cls.ALL)


class TransferJobType(str, Enum):
    STAGE_IN = "stage_in"
    STAGE_OUT = "stage_out"
    INTER_SITE = "inter_site"
