"""In-memory job store. Keyed by processing ID."""

from models.job import ProcessingJob

jobs: dict[str, ProcessingJob] = {}
