"""Course transactions: owner, teacher and student roles.

onSubmit items move database rows into a PENDING_TX state and are never
critical; onConfirmation items finalize rows to match the chain and are.
"""
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from tx_lifecycle.definitions.common import (
    ACCESS_TOKEN,
    Alias,
    Hash64,
    InitiatedTxParams,
    PolicyId,
    ShortText140,
    SideEffectParams,
    cost,
    docs,
    protocol_spec,
    ui,
)
from tx_lifecycle.schemas.definition import (
    BuildConfig,
    SideEffect,
    SideEffectCondition,
    TransactionDefinition,
    from_context,
    literal,
)

TEACHERS_MANAGE_ID = "course.owner.teachers.manage"
MODULES_MANAGE_ID = "course.teacher.modules.manage"
ASSIGNMENTS_ASSESS_ID = "course.teacher.assignments.assess"
ASSIGNMENT_COMMIT_ID = "course.student.assignment.commit"
ASSIGNMENT_UPDATE_ID = "course.student.assignment.update"
CREDENTIAL_CLAIM_ID = "course.student.credential.claim"

AssessmentOutcome = Literal["accept", "refuse"]


class CourseTxParams(InitiatedTxParams):
    course_id: PolicyId


# Owner

class TeachersManageParams(CourseTxParams):
    teachers_to_add: list[Alias]
    teachers_to_remove: list[Alias]


# Teacher

class ModuleToMint(BaseModel):
    slts: list[str]
    allowed_course_state_ids: list[PolicyId]
    prereq_slt_hashes: list[Hash64]


class ModuleToUpdate(BaseModel):
    slt_hash: Hash64
    allowed_course_state_ids: list[PolicyId]
    prereq_slt_hashes: list[Hash64]


class ModulesManageParams(CourseTxParams):
    modules_to_mint: list[ModuleToMint]
    modules_to_update: list[ModuleToUpdate]
    modules_to_burn: list[Hash64]


class PendingModule(BaseModel):
    module_code: str
    status: Literal["PENDING_TX"] = "PENDING_TX"
    pending_tx_hash: Hash64


class ConfirmedModule(BaseModel):
    module_code: str
    module_hash: Hash64


class ModulesManageSideEffectParams(SideEffectParams):
    modules_pending: list[PendingModule]
    modules_confirm: list[ConfirmedModule]


class AssignmentDecision(BaseModel):
    alias: Alias
    outcome: AssessmentOutcome


class AssignmentsAssessParams(CourseTxParams):
    assignment_decisions: list[AssignmentDecision]


class AssignmentsAssessSideEffectParams(SideEffectParams):
    """Single-assessment parameters; batched decisions are submitted one per call."""
    module_code: str = Field(..., min_length=1)
    student_access_token_alias: str = Field(..., min_length=1)
    assessment_result: AssessmentOutcome


# Student

class AssignmentCommitParams(CourseTxParams):
    slt_hash: Hash64
    assignment_info: ShortText140 = Field(..., min_length=1)


class AssignmentUpdateParams(CourseTxParams):
    assignment_info: ShortText140 = Field(..., min_length=1)


class AssignmentEvidenceParams(SideEffectParams):
    module_code: str = Field(..., min_length=1)
    network_evidence: Optional[Any] = None  # Rich-text document
    network_evidence_hash: str


def _commitment_key() -> dict:
    """Body fields identifying one student's assignment commitment."""
    return {
        "policy_id": from_context("tx_params.course_id"),
        "module_code": from_context("side_effect_params.module_code"),
        "access_token_alias": from_context("tx_params.alias"),
    }


def _assessed_commitment_key() -> dict:
    return {
        "policy_id": from_context("tx_params.course_id"),
        "module_code": from_context("side_effect_params.module_code"),
        "access_token_alias": from_context("side_effect_params.student_access_token_alias"),
    }


COURSE_OWNER_TEACHERS_MANAGE = TransactionDefinition(
    tx_type="COURSE_OWNER_TEACHERS_MANAGE",
    role="course-owner",
    entity_type="course",
    protocol_spec=protocol_spec(TEACHERS_MANAGE_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=TeachersManageParams,
        builder_endpoint="/api/v2/tx/course/owner/teachers/manage",
        estimated_cost=cost(250_000),
    ),
    ui=ui(
        TEACHERS_MANAGE_ID,
        button_text="Update Teachers",
        title="Manage Course Teachers",
        description="Add or remove teachers authorized to manage this course.",
        success_info="Course teachers updated successfully!",
    ),
    docs=docs(TEACHERS_MANAGE_ID),
)

COURSE_TEACHER_MODULES_MANAGE = TransactionDefinition(
    tx_type="COURSE_TEACHER_MODULES_MANAGE",
    role="course-teacher",
    entity_type="module",
    protocol_spec=protocol_spec(MODULES_MANAGE_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=ModulesManageParams,
        side_effect_params_schema=ModulesManageSideEffectParams,
        builder_endpoint="/v2/tx/course/teacher/modules/manage",
        estimated_cost=cost(350_000, min_deposit=1_500_000),
    ),
    on_submit=(
        SideEffect(
            label="Batch Update Module Status to Pending",
            endpoint="/course/teacher/course-modules/batch-update-status",
            body={
                "policy_id": from_context("build_inputs.course_id"),
                "course_modules": from_context("build_inputs.modules_pending"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Batch Confirm Module Management",
            endpoint="/course/teacher/course-modules/batch-confirm",
            body={
                "policy_id": from_context("build_inputs.course_id"),
                "tx_hash": from_context("tx_hash"),
                "course_modules": from_context("build_inputs.modules_confirm"),
            },
            critical=True,
        ),
    ),
    ui=ui(
        MODULES_MANAGE_ID,
        button_text="Publish Modules",
        title="Manage Course Modules",
        description="Mint, update or burn course module tokens on-chain.",
        success_info="Course modules updated successfully!",
    ),
    docs=docs(MODULES_MANAGE_ID),
)

COURSE_TEACHER_ASSIGNMENTS_ASSESS = TransactionDefinition(
    tx_type="COURSE_TEACHER_ASSIGNMENTS_ASSESS",
    role="course-teacher",
    entity_type="assignment-commitment",
    protocol_spec=protocol_spec(ASSIGNMENTS_ASSESS_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=AssignmentsAssessParams,
        side_effect_params_schema=AssignmentsAssessSideEffectParams,
        builder_endpoint="/api/v2/tx/course/teacher/assignments/assess",
        estimated_cost=cost(300_000),
    ),
    on_submit=(
        SideEffect(
            label="Update Assignment Commitment to Pending Accept",
            endpoint="/course/shared/assignment-commitment/update-status",
            body={
                **_assessed_commitment_key(),
                "network_status": literal("PENDING_TX_ASSIGNMENT_ACCEPTED"),
                "pending_tx_hash": from_context("tx_hash"),
            },
            condition=SideEffectCondition(path="assessment_result", equals="accept"),
        ),
        SideEffect(
            label="Update Assignment Commitment to Pending Refuse",
            endpoint="/course/shared/assignment-commitment/update-status",
            body={
                **_assessed_commitment_key(),
                "network_status": literal("PENDING_TX_ASSIGNMENT_REFUSED"),
                "pending_tx_hash": from_context("tx_hash"),
            },
            condition=SideEffectCondition(path="assessment_result", equals="refuse"),
        ),
    ),
    on_confirmation=(
        # Same call for both outcomes; the API maps each pending status to its final one
        SideEffect(
            label="Confirm Assignment Assessment",
            endpoint="/course/shared/assignment-commitment/confirm-transaction",
            body={**_assessed_commitment_key(), "tx_hash": from_context("tx_hash")},
            critical=True,
        ),
    ),
    ui=ui(
        ASSIGNMENTS_ASSESS_ID,
        button_text="Assess Assignment",
        title="Assess Student Assignment",
        description=(
            "Review and assess a student's assignment submission. Accept to grant the "
            "student a credential for this module, or refuse with feedback."
        ),
        success_info="Assignment assessment submitted successfully!",
    ),
    docs=docs(ASSIGNMENTS_ASSESS_ID),
)

COURSE_STUDENT_ASSIGNMENT_COMMIT = TransactionDefinition(
    tx_type="COURSE_STUDENT_ASSIGNMENT_COMMIT",
    role="course-student",
    entity_type="assignment-commitment",
    protocol_spec=protocol_spec(ASSIGNMENT_COMMIT_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=AssignmentCommitParams,
        side_effect_params_schema=AssignmentEvidenceParams,
        builder_endpoint="/api/v2/tx/course/student/assignment/commit",
        estimated_cost=cost(300_000, min_deposit=1_200_000),
    ),
    on_submit=(
        SideEffect(
            label="Create Assignment Commitment",
            endpoint="/course/student/assignment-commitment/create",
            body={
                **_commitment_key(),
                "network_evidence": from_context("side_effect_params.network_evidence"),
                "network_evidence_hash": from_context("side_effect_params.network_evidence_hash"),
                "network_status": literal("PENDING_TX_COMMITMENT_MADE"),
                "pending_tx_hash": from_context("tx_hash"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Confirm Assignment Commitment",
            endpoint="/course/shared/assignment-commitment/confirm-transaction",
            body={**_commitment_key(), "tx_hash": from_context("tx_hash")},
            critical=True,
        ),
    ),
    ui=ui(
        ASSIGNMENT_COMMIT_ID,
        button_text="Submit Assignment",
        title="Commit to Assignment",
        description="Commit your assignment evidence for this module on-chain.",
        success_info="Assignment submitted successfully!",
    ),
    docs=docs(ASSIGNMENT_COMMIT_ID),
)

COURSE_STUDENT_ASSIGNMENT_UPDATE = TransactionDefinition(
    tx_type="COURSE_STUDENT_ASSIGNMENT_UPDATE",
    role="course-student",
    entity_type="assignment-commitment",
    protocol_spec=protocol_spec(ASSIGNMENT_UPDATE_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=AssignmentUpdateParams,
        side_effect_params_schema=AssignmentEvidenceParams,
        builder_endpoint="/v2/tx/course/student/assignment/update",
        estimated_cost=cost(300_000),
    ),
    on_submit=(
        SideEffect(
            label="Update Assignment Commitment Evidence",
            endpoint="/course/student/assignment-commitment/update-evidence",
            body={
                **_commitment_key(),
                "network_evidence": from_context("side_effect_params.network_evidence"),
                "network_evidence_hash": from_context("side_effect_params.network_evidence_hash"),
                "network_status": literal("PENDING_TX_ADD_INFO"),
                "pending_tx_hash": from_context("tx_hash"),
            },
        ),
    ),
    on_confirmation=(
        SideEffect(
            label="Confirm Assignment Update",
            endpoint="/course/shared/assignment-commitment/confirm-transaction",
            body={**_commitment_key(), "tx_hash": from_context("tx_hash")},
            critical=True,
        ),
    ),
    ui=ui(
        ASSIGNMENT_UPDATE_ID,
        button_text="Update Assignment",
        title="Update Assignment Evidence",
        description="Replace the evidence of a refused or pending assignment commitment.",
        success_info="Assignment updated successfully!",
    ),
    docs=docs(ASSIGNMENT_UPDATE_ID),
)

COURSE_STUDENT_CREDENTIAL_CLAIM = TransactionDefinition(
    tx_type="COURSE_STUDENT_CREDENTIAL_CLAIM",
    role="course-student",
    entity_type="course",
    protocol_spec=protocol_spec(CREDENTIAL_CLAIM_ID, ACCESS_TOKEN),
    build_config=BuildConfig(
        params_schema=CourseTxParams,
        builder_endpoint="/v2/tx/course/student/credential/claim",
        estimated_cost=cost(280_000),
    ),
    ui=ui(
        CREDENTIAL_CLAIM_ID,
        button_text="Claim Credential",
        title="Claim Course Credential",
        description="Claim the credential for all accepted assignments in this course.",
        success_info="Credential claimed successfully!",
    ),
    docs=docs(CREDENTIAL_CLAIM_ID),
)

DEFINITIONS = (
    COURSE_OWNER_TEACHERS_MANAGE,
    COURSE_TEACHER_MODULES_MANAGE,
    COURSE_TEACHER_ASSIGNMENTS_ASSESS,
    COURSE_STUDENT_ASSIGNMENT_COMMIT,
    COURSE_STUDENT_ASSIGNMENT_UPDATE,
    COURSE_STUDENT_CREDENTIAL_CLAIM,
)
