"""Project transactions: owner, manager and contributor roles."""
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from tx_lifecycle.definitions.common import (
    ACCESS_TOKEN,
    Alias,
    Hash64,
    PolicyId,
    ShortText140,
    SideEffectParams,
    TxParams,
    cost,
    docs,
    protocol_spec,
    ui,
)
from tx_lifecycle.schemas.definition import (
    BuildConfig,
    SideEffect,
    TransactionDefinition,
    from_context,
    literal,
)

MANAGERS_MANAGE_ID = "project.owner.managers.manage"
BLACKLIST_MANAGE_ID = "project.owner.contributor-blacklist.manage"
TASKS_MANAGE_ID = "project.manager.tasks.manage"
TASKS_ASSESS_ID = "project.manager.tasks.assess"
TASK_COMMIT_ID = "project.contributor.task.commit"
TASK_ACTION_ID = "project.contributor.task.action"
CREDENTIAL_CLAIM_ID = "project.contributor.credential.claim"

TaskOutcome = Literal["accept", "refuse", "deny"]


class ProjectTxParams(TxParams):
    alias: Alias
    project_id: PolicyId


class ContributorTxParams(ProjectTxParams):
    contributor_state_id: PolicyId


# Owner

class ManagersManageParams(ProjectTxParams):
    managers_to_add: list[Alias]
    managers_to_remove: list[Alias]


class BlacklistManageParams(ProjectTxParams):
    aliases_to_add: list[Alias]
    aliases_to_remove: list[Alias]


# Manager

class ProjectData(BaseModel):
    project_content: ShortText140
    expiration_time: int  # POSIX milliseconds
    lovelace_amount: int
    native_assets: list[tuple[str, int]] = Field(default_factory=list)


class TasksManageParams(ContributorTxParams):
    tasks_to_add: list[ProjectData]
    tasks_to_remove: list[ProjectData]
    deposit_value: list[tuple[str, int]]


class PendingTask(BaseModel):
    arbitrary_hash: Hash64
    status: Literal["PENDING_TX"] = "PENDING_TX"
    pending_tx_hash: Hash64


class ConfirmedTask(BaseModel):
    arbitrary_hash: Hash64
    task_hash: Hash64


class TasksManageSideEffectParams(SideEffectParams):
    tasks_pending: list[PendingTask]
    tasks_confirm: list[ConfirmedTask]


class TaskDecision(BaseModel):
    alias: Alias
    outcome: TaskOutcome


class TasksAssessParams(ContributorTxParams):
    task_decisions: list[TaskDecision]


class TasksAssessSideEffectParams(SideEffectParams):
    task_hash: Hash64
    contributor_alias: Alias
    decision: TaskOutcome


# Contributor

class CommittedTask(BaseModel):
    task_hash: Hash64
    task_info: ShortText140
    contributor_state_policy_id: PolicyId


class TaskCommitParams(ContributorTxParams):
    task_hash: Hash64
    task_info: ShortText140
    tasks: list[CommittedTask] = Field(..., min_length=1, max_length=1)


class TaskEvidenceParams(SideEffectParams):
    evidence: Optional[Any] = None  # Rich-text document


class TaskActionParams(ProjectTxParams):
    project_info: Optional[ShortText140] = None


class TaskActionSideEffectParams(TaskEvidenceParams):
    task_hash: Hash64


PROJECT_OWNER_MANAGERS_MANAGE = TransactionDefinition(
    tx_type="PROJECT_OWNER_MANAGERS_MANAGE",
    role="project-owner",
    entity_type="project",
    protocol_spec=protocol_spec(MANAGERS_MANAGE_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=ManagersManageParams,
        builder_endpoint="/api/v2/tx/project/owner/managers/manage",
        estimated_cost=cost(250_000),
    ),
    ui=ui(
        MANAGERS_MANAGE_ID,
        button_text="Update Managers",
        title="Manage Project Managers",
        description="Add or remove managers authorized to run this project.",
        success_info="Project managers updated successfully!",
    ),
    docs=docs(MANAGERS_MANAGE_ID),
)

PROJECT_OWNER_BLACKLIST_MANAGE = TransactionDefinition(
    tx_type="PROJECT_OWNER_BLACKLIST_MANAGE",
    role="project-owner",
    entity_type="project",
    protocol_spec=protocol_spec(BLACKLIST_MANAGE_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=BlacklistManageParams,
        builder_endpoint="/api/v2/tx/project/owner/contributor-blacklist/manage",
        estimated_cost=cost(250_000),
    ),
    ui=ui(
        BLACKLIST_MANAGE_ID,
        button_text="Update Blacklist",
        title="Manage Contributor Blacklist",
        description="Block or unblock contributors from committing to project tasks.",
        success_info="Contributor blacklist updated successfully!",
    ),
    docs=docs(BLACKLIST_MANAGE_ID),
)

PROJECT_MANAGER_TASKS_MANAGE = TransactionDefinition(
    tx_type="PROJECT_MANAGER_TASKS_MANAGE",
    role="project-manager",
    entity_type="task",
    protocol_spec=protocol_spec(TASKS_MANAGE_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=TasksManageParams,
        side_effect_params_schema=TasksManageSideEffectParams,
        builder_endpoint="/v2/tx/project/manager/tasks/manage",
        estimated_cost=cost(400_000, min_deposit=2_000_000),
    ),
    on_submit=(
        SideEffect(
            label="Batch Update Task Status to Pending",
            endpoint="/project/manager/task/batch-update-status",
            body={
                "treasury_nft_policy_id": from_context("tx_params.project_id"),
                "tasks": from_context("side_effect_params.tasks_pending"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Batch Confirm Task Management",
            endpoint="/project/manager/task/batch-confirm",
            body={
                "treasury_nft_policy_id": from_context("tx_params.project_id"),
                "tx_hash": from_context("tx_hash"),
                "tasks": from_context("side_effect_params.tasks_confirm"),
            },
            critical=True,
        ),
    ),
    ui=ui(
        TASKS_MANAGE_ID,
        button_text="Publish Tasks",
        title="Manage Project Tasks",
        description="Add or remove funded tasks in the project treasury.",
        success_info="Project tasks updated successfully!",
    ),
    docs=docs(TASKS_MANAGE_ID),
)

PROJECT_MANAGER_TASKS_ASSESS = TransactionDefinition(
    tx_type="PROJECT_MANAGER_TASKS_ASSESS",
    role="project-manager",
    entity_type="task-commitment",
    protocol_spec=protocol_spec(TASKS_ASSESS_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=TasksAssessParams,
        side_effect_params_schema=TasksAssessSideEffectParams,
        builder_endpoint="/v2/tx/project/manager/tasks/assess",
        estimated_cost=cost(300_000),
    ),
    on_submit=(
        SideEffect(
            label="Assess Task Commitment",
            endpoint="/project-v2/manager/commitment/assess",
            body={
                "task_hash": from_context("side_effect_params.task_hash"),
                "contributor_alias": from_context("side_effect_params.contributor_alias"),
                "decision": from_context("side_effect_params.decision"),
                "pending_tx_hash": from_context("tx_hash"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Confirm Task Assessment",
            endpoint="/project-v2/manager/commitment/confirm-assess",
            body={
                "task_hash": from_context("side_effect_params.task_hash"),
                "contributor_alias": from_context("side_effect_params.contributor_alias"),
                "tx_hash": from_context("tx_hash"),
            },
            critical=True,
        ),
    ),
    ui=ui(
        TASKS_ASSESS_ID,
        button_text="Assess Task",
        title="Assess Task Commitment",
        description="Accept, refuse or deny a contributor's task submission.",
        success_info="Task assessment submitted successfully!",
    ),
    docs=docs(TASKS_ASSESS_ID),
)

PROJECT_CONTRIBUTOR_TASK_COMMIT = TransactionDefinition(
    tx_type="PROJECT_CONTRIBUTOR_TASK_COMMIT",
    role="project-contributor",
    entity_type="task-commitment",
    protocol_spec=protocol_spec(TASK_COMMIT_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=TaskCommitParams,
        side_effect_params_schema=TaskEvidenceParams,
        builder_endpoint="/api/v2/tx/project/contributor/task/commit",
        estimated_cost=cost(300_000, min_deposit=1_500_000),
    ),
    on_submit=(
        SideEffect(
            label="Create Task Commitment",
            endpoint="/project-v2/contributor/commitment/create",
            body={"task_hash": from_context("tx_params.task_hash")},
        ),
        SideEffect(
            label="Submit Commitment for Review",
            endpoint="/project-v2/contributor/commitment/submit",
            body={
                "task_hash": from_context("tx_params.task_hash"),
                "evidence": from_context("side_effect_params.evidence"),
                "pending_tx_hash": from_context("tx_hash"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Confirm Task Commitment",
            endpoint="/project-v2/contributor/commitment/confirm-tx",
            body={
                "task_hash": from_context("tx_params.task_hash"),
                "tx_hash": from_context("tx_hash"),
            },
        ),
    ),
    ui=ui(
        TASK_COMMIT_ID,
        button_text="Commit to Task",
        title="Commit to Task",
        description="Commit to a project task and submit your initial evidence.",
        success_info="Task commitment submitted successfully!",
    ),
    docs=docs(TASK_COMMIT_ID),
)

PROJECT_CONTRIBUTOR_TASK_ACTION = TransactionDefinition(
    tx_type="PROJECT_CONTRIBUTOR_TASK_ACTION",
    role="project-contributor",
    entity_type="task-commitment",
    protocol_spec=protocol_spec(TASK_ACTION_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=TaskActionParams,
        side_effect_params_schema=TaskActionSideEffectParams,
        builder_endpoint="/v2/tx/project/contributor/task/action",
        estimated_cost=cost(280_000),
    ),
    on_submit=(
        SideEffect(
            label="Update Task Status to Pending",
            endpoint="/project/contributor/commitment/update-status",
            body={
                "task_hash": from_context("side_effect_params.task_hash"),
                "status": literal("PENDING_TX_ADD_INFO"),
                "pending_tx_hash": from_context("tx_hash"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Confirm Task Action",
            endpoint="/project/contributor/commitment/confirm-transaction",
            body={
                "task_hash": from_context("side_effect_params.task_hash"),
                "tx_hash": from_context("tx_hash"),
            },
            critical=True,
        ),
    ),
    ui=ui(
        TASK_ACTION_ID,
        button_text="Update Task",
        title="Update Task Commitment",
        description="Add information to an existing task commitment.",
        success_info="Task commitment updated successfully!",
    ),
    docs=docs(TASK_ACTION_ID),
)

PROJECT_CONTRIBUTOR_CREDENTIAL_CLAIM = TransactionDefinition(
    tx_type="PROJECT_CONTRIBUTOR_CREDENTIAL_CLAIM",
    role="project-contributor",
    entity_type="project",
    protocol_spec=protocol_spec(CREDENTIAL_CLAIM_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=ContributorTxParams,
        builder_endpoint="/v2/tx/project/contributor/credential/claim",
        estimated_cost=cost(280_000),
    ),
    ui=ui(
        CREDENTIAL_CLAIM_ID,
        button_text="Claim Credential",
        title="Claim Contributor Credential",
        description="Claim your contributor credential and collect task rewards.",
        success_info="Credential claimed successfully!",
    ),
    docs=docs(CREDENTIAL_CLAIM_ID),
)

DEFINITIONS = (
    PROJECT_OWNER_MANAGERS_MANAGE,
    PROJECT_OWNER_BLACKLIST_MANAGE,
    PROJECT_MANAGER_TASKS_MANAGE,
    PROJECT_MANAGER_TASKS_ASSESS,
    PROJECT_CONTRIBUTOR_TASK_COMMIT,
    PROJECT_CONTRIBUTOR_TASK_ACTION,
    PROJECT_CONTRIBUTOR_CREDENTIAL_CLAIM,
)
