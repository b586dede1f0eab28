"""Instance transactions: creating courses and projects."""
from pydantic import Field

from tx_lifecycle.definitions.common import (
    ACCESS_TOKEN,
    Alias,
    InitiatedTxParams,
    PolicyId,
    SideEffectParams,
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
)

COURSE_CREATE_ID = "instance.owner.course.create"
PROJECT_CREATE_ID = "instance.owner.project.create"


class CourseCreateParams(InitiatedTxParams):
    teachers: list[Alias] = Field(..., min_length=1)


class CourseCreateSideEffectParams(SideEffectParams):
    title: str = Field(..., min_length=1)
    course_nft_policy_id: PolicyId  # From the builder response course_id


class ProjectCreateParams(InitiatedTxParams):
    managers: list[Alias]
    course_prereqs: list[tuple[PolicyId, list[str]]]  # (course_id, slt_hashes)
    deposit_value: list[tuple[str, int]]


class ProjectCreateSideEffectParams(SideEffectParams):
    title: str = Field(..., min_length=1)
    project_nft_policy_id: PolicyId


INSTANCE_COURSE_CREATE = TransactionDefinition(
    tx_type="INSTANCE_COURSE_CREATE",
    role="instance-owner",
    entity_type="course",
    protocol_spec=protocol_spec(COURSE_CREATE_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=CourseCreateParams,
        side_effect_params_schema=CourseCreateSideEffectParams,
        builder_endpoint="/api/v2/tx/instance/owner/course/create",
        estimated_cost=cost(450_000, min_deposit=5_000_000),
    ),
    on_submit=(
        SideEffect(
            label="Create Course in Database",
            endpoint="/course/owner/course/mint",
            body={
                "title": from_context("build_inputs.title"),
                "course_nft_policy_id": from_context("build_inputs.course_nft_policy_id"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Confirm Course Creation and Sync Teachers",
            endpoint="/course/owner/course/confirm-mint",
            body={
                "course_nft_policy_id": from_context("build_inputs.course_nft_policy_id"),
                "tx_hash": from_context("tx_hash"),
            },
            critical=True,
        ),
    ),
    ui=ui(
        COURSE_CREATE_ID,
        button_text="Create Course",
        title="Create Course",
        description="Mint a new course NFT and register its teachers on-chain.",
        success_info="Course created successfully!",
    ),
    docs=docs(COURSE_CREATE_ID),
)

INSTANCE_PROJECT_CREATE = TransactionDefinition(
    tx_type="INSTANCE_PROJECT_CREATE",
    role="instance-owner",
    entity_type="project",
    protocol_spec=protocol_spec(PROJECT_CREATE_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=ProjectCreateParams,
        side_effect_params_schema=ProjectCreateSideEffectParams,
        builder_endpoint="/api/v2/tx/instance/owner/project/create",
        estimated_cost=cost(500_000, min_deposit=5_000_000),
    ),
    on_submit=(
        SideEffect(
            label="Create Project in Database",
            endpoint="/project/owner/treasury/mint",
            body={
                "title": from_context("side_effect_params.title"),
                "treasury_nft_policy_id": from_context("side_effect_params.project_nft_policy_id"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Confirm Project Creation",
            endpoint="/project/owner/treasury/confirm-mint",
            body={
                "treasury_nft_policy_id": from_context("side_effect_params.project_nft_policy_id"),
                "tx_hash": from_context("tx_hash"),
            },
            critical=True,
        ),
    ),
    ui=ui(
        PROJECT_CREATE_ID,
        button_text="Create Project",
        title="Create Project",
        description="Mint a new project treasury with its managers and course prerequisites.",
        success_info="Project created successfully!",
    ),
    docs=docs(PROJECT_CREATE_ID),
)

DEFINITIONS = (INSTANCE_COURSE_CREATE, INSTANCE_PROJECT_CREATE)
