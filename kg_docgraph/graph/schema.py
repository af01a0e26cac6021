# kg_docgraph/graph/schema.py

from enum import Enum


class ProcessingStatus(str, Enum):
    # Fixed order a document moves through while being processed
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    POST_PROCESSING = "post_processing"
    COMPLETED = "completed"

    # Terminal state for any stage that failed
    FAILED = "failed"


# Progress reported alongside each status
STATUS_PROGRESS = {
    ProcessingStatus.UPLOADING: 20,
    ProcessingStatus.UPLOADED: 40,
    ProcessingStatus.PROCESSING: 60,
    ProcessingStatus.POST_PROCESSING: 80,
    ProcessingStatus.COMPLETED: 100,
    ProcessingStatus.FAILED: 0,
}


class NodeType(str, Enum):
    # Recommended entity categories; node types are not enforced
    PERSON = "Person"
    CONCEPT = "Concept"
    METHOD = "Method"
    LOCATION = "Location"
    ORGANIZATION = "Organization"
    ALGORITHM = "Algorithm"
    DATASET = "Dataset"
    TECHNOLOGY = "Technology"
    EVENT = "Event"
