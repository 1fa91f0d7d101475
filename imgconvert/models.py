from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel


class ConversionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImageRecord(BaseModel):
    """One row of the selection images table, as stored in the record store."""

    id: str
    source_file_url: str
    source_format: str
    target_format: str
    conversion_status: ConversionStatus = ConversionStatus.PENDING
    file_url: Optional[str] = None
    requires_conversion: bool = True


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


ImageId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class ConvertRequest(_ApiModel):
    image_ids: list[ImageId] = Field(min_length=1)


class ConversionResult(_ApiModel):
    original_url: str
    converted_url: str
    format: str


class ItemSuccess(_ApiModel):
    image_id: str
    status: Literal["success"] = "success"
    result: ConversionResult


class ItemFailure(_ApiModel):
    image_id: str
    status: Literal["error"] = "error"
    error: str


ItemOutcome = Union[ItemSuccess, ItemFailure]


class BatchSummary(_ApiModel):
    total: int
    successful: int
    failed: int


class BatchResult(_ApiModel):
    message: str = "Conversion process completed"
    results: list[ItemOutcome] = Field(default_factory=list)

    @property
    def summary(self) -> BatchSummary:
        successful = sum(1 for r in self.results if isinstance(r, ItemSuccess))
        return BatchSummary(
            total=len(self.results),
            successful=successful,
            failed=len(self.results) - successful,
        )


class ConvertResponse(_ApiModel):
    message: str
    results: list[ItemOutcome]
    summary: BatchSummary


class StatusResponse(_ApiModel):
    image_id: str
    status: ConversionStatus
    source_url: str
    converted_url: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
