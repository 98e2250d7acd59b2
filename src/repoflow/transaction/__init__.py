# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""TCC transaction manager for repository lifecycle operations."""

from repoflow.transaction.events import (
    CompositeEventsAdapter,
    LoggerEventsAdapter,
    MetricsEventsAdapter,
)
from repoflow.transaction.exceptions import (
    AccessDeniedError,
    CancelFailure,
    ConfirmationFailure,
    ExecutionFailure,
    ProjectNotFoundError,
    TransactionException,
    TransactionNotFoundException,
    ValidationFailure,
)
from repoflow.transaction.manager import DistributedTransactionManager, normalize_create_request
from repoflow.transaction.memory import InMemoryTransactionStore
from repoflow.transaction.ports import TransactionEventsPort, TransactionStorePort
from repoflow.transaction.recovery import CleanupReport, RecoveryReport, TransactionRecoveryService
from repoflow.transaction.types import (
    DistributedTransaction,
    TransactionPhase,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "AccessDeniedError",
    "CancelFailure",
    "CleanupReport",
    "CompositeEventsAdapter",
    "ConfirmationFailure",
    "DistributedTransaction",
    "DistributedTransactionManager",
    "ExecutionFailure",
    "InMemoryTransactionStore",
    "LoggerEventsAdapter",
    "MetricsEventsAdapter",
    "ProjectNotFoundError",
    "RecoveryReport",
    "TransactionEventsPort",
    "TransactionException",
    "TransactionNotFoundException",
    "TransactionPhase",
    "TransactionRecoveryService",
    "TransactionStatus",
    "TransactionStorePort",
    "TransactionType",
    "ValidationFailure",
    "normalize_create_request",
]
