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
"""repoflow: keeps a project service consistent with an external Git gateway.

Three subsystems:

* :mod:`repoflow.transaction` -- TCC transactions over repository lifecycle
  operations.
* :mod:`repoflow.compensation` -- durable undo intents with bounded retry.
* :mod:`repoflow.webhook` -- signed, filtered, retried event callbacks.

:func:`build_orchestrator` wires them from :class:`Config`.
"""

from repoflow.bootstrap import Orchestrator, build_orchestrator, configure_logging
from repoflow.compensation import (
    CompensationAction,
    CompensationEntry,
    CompensationManager,
    CompensationStatus,
)
from repoflow.core import Config
from repoflow.gateway import (
    CreateRepositoryRequest,
    GitGatewayPort,
    HttpxGitGatewayClient,
    InMemoryGitGateway,
    Repository,
)
from repoflow.kernel import CancellationToken, RepoflowException
from repoflow.project import InMemoryProjectRepository, Project, ProjectRepositoryPort
from repoflow.transaction import (
    DistributedTransaction,
    DistributedTransactionManager,
    TransactionException,
    TransactionPhase,
    TransactionRecoveryService,
    TransactionStatus,
)
from repoflow.webhook import (
    CallbackConfig,
    CallbackDispatcher,
    CallbackEvent,
    CallbackResult,
    verify_signature,
)

__version__ = "0.1.0"

__all__ = [
    "CallbackConfig",
    "CallbackDispatcher",
    "CallbackEvent",
    "CallbackResult",
    "CancellationToken",
    "CompensationAction",
    "CompensationEntry",
    "CompensationManager",
    "CompensationStatus",
    "Config",
    "CreateRepositoryRequest",
    "DistributedTransaction",
    "DistributedTransactionManager",
    "GitGatewayPort",
    "HttpxGitGatewayClient",
    "InMemoryGitGateway",
    "InMemoryProjectRepository",
    "Orchestrator",
    "Project",
    "ProjectRepositoryPort",
    "RepoflowException",
    "Repository",
    "TransactionException",
    "TransactionPhase",
    "TransactionRecoveryService",
    "TransactionStatus",
    "build_orchestrator",
    "configure_logging",
    "verify_signature",
    "__version__",
]
