"""Transaction definition schemas.

A definition is pure data: build parameters, a builder endpoint, and two
ordered lists of declarative side effects. Side effects never contain code;
values are pulled from the submission context through ``ValueSource`` entries
and branches are expressed as equality ``condition`` blocks.
"""
import enum
import re
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tx_lifecycle.exceptions import DefinitionValidationError

# Endpoint value marking a side effect whose target API does not exist yet
NOT_IMPLEMENTED = "Not implemented"

PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_SCALAR_TYPES = (str, int, float, bool, type(None))


class HttpMethod(str, enum.Enum):
    """HTTP methods for side-effect calls."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class LiteralValue(BaseModel):
    """Body value fixed in the definition."""
    model_config = ConfigDict(frozen=True)

    source: Literal["literal"] = "literal"
    value: Any = None


class ContextValue(BaseModel):
    """Body value read from the submission context by dotted path."""
    model_config = ConfigDict(frozen=True)

    source: Literal["context"] = "context"
    path: str = Field(..., min_length=1)


ValueSource = Annotated[Union[LiteralValue, ContextValue], Field(discriminator="source")]


def literal(value: Any) -> LiteralValue:
    """Shorthand for a literal body value."""
    return LiteralValue(value=value)


def from_context(path: str) -> ContextValue:
    """Shorthand for a context body value."""
    return ContextValue(path=path)


class SideEffectCondition(BaseModel):
    """Run the side effect only when ``build_inputs[path]`` equals one of ``equals``."""
    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1)
    equals: Any

    @field_validator("equals")
    @classmethod
    def validate_equals(cls, v: Any) -> Any:
        """Only scalars or lists of scalars are comparable."""
        if isinstance(v, (list, tuple)):
            if not all(isinstance(item, _SCALAR_TYPES) for item in v):
                raise ValueError("condition.equals list may only contain scalars")
            return tuple(v)
        if not isinstance(v, _SCALAR_TYPES):
            raise ValueError("condition.equals must be a scalar or a list of scalars")
        return v

    @property
    def expected_values(self) -> tuple:
        if isinstance(self.equals, tuple):
            return self.equals
        return (self.equals,)


class RetryPolicy(BaseModel):
    """In-call retry for transport errors and 5xx responses."""
    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_ms: int = Field(default=500, ge=0)


class SideEffect(BaseModel):
    """Declarative API call executed at a lifecycle phase."""
    model_config = ConfigDict(frozen=True)

    label: str = Field(..., min_length=1)
    method: HttpMethod = HttpMethod.POST
    endpoint: str = Field(..., min_length=1)
    path_params: dict[str, str] = Field(default_factory=dict)
    body: Optional[dict[str, ValueSource]] = None
    condition: Optional[SideEffectCondition] = None
    critical: bool = False
    retry: Optional[RetryPolicy] = None

    @property
    def is_implemented(self) -> bool:
        return self.endpoint != NOT_IMPLEMENTED

    @property
    def placeholders(self) -> set[str]:
        """Names of ``{name}`` placeholders in the endpoint template."""
        if not self.is_implemented:
            return set()
        return set(PLACEHOLDER_RE.findall(self.endpoint))


class ProtocolSpec(BaseModel):
    """Reference to the on-chain protocol transaction this definition builds."""
    model_config = ConfigDict(frozen=True)

    protocol_id: str
    version: str = "v2"
    required_capabilities: tuple[str, ...] = ()

    @property
    def yaml_path(self) -> str:
        system, _, name = self.protocol_id.partition(".")
        return f"/yaml/transactions/{self.version}/{system}/{name}.yaml"


class AdditionalCost(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    amount: int  # lovelace


class TransactionCost(BaseModel):
    """Estimated cost breakdown in lovelace."""
    model_config = ConfigDict(frozen=True)

    tx_fee: int
    min_deposit: Optional[int] = None
    additional_costs: tuple[AdditionalCost, ...] = ()

    @property
    def total(self) -> int:
        return self.tx_fee + (self.min_deposit or 0) + sum(c.amount for c in self.additional_costs)


class EmptyParams(BaseModel):
    """Schema for transactions without side-effect parameters."""
    model_config = ConfigDict(extra="forbid")


class BuildConfig(BaseModel):
    """How the transaction is built by the external builder API."""
    model_config = ConfigDict(frozen=True)

    params_schema: type[BaseModel]
    side_effect_params_schema: type[BaseModel] = EmptyParams
    builder_endpoint: str
    estimated_cost: Optional[TransactionCost] = None


class UIMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    button_text: str
    title: str
    description: tuple[str, ...] = ()
    footer_link: Optional[str] = None
    footer_link_text: Optional[str] = None
    success_info: Optional[str] = None


class Documentation(BaseModel):
    model_config = ConfigDict(frozen=True)

    protocol_docs: Optional[str] = None
    api_docs: Optional[str] = None
    examples: tuple[str, ...] = ()


class TransactionDefinition(BaseModel):
    """Complete, immutable description of one transaction type."""
    model_config = ConfigDict(frozen=True)

    tx_type: str = Field(..., min_length=1)
    role: str
    entity_type: Optional[str] = None  # Key for on-chain extractors
    protocol_spec: ProtocolSpec
    build_config: BuildConfig
    on_submit: tuple[SideEffect, ...] = ()
    on_confirmation: tuple[SideEffect, ...] = ()
    ui: Optional[UIMetadata] = None
    docs: Optional[Documentation] = None

    def validate_inputs(
        self,
        tx_params: dict[str, Any],
        side_effect_params: Optional[dict[str, Any]] = None,
    ) -> tuple[dict[str, Any], dict[str, Any], dict[str, Any]]:
        """Validate build inputs against both schemas.

        Returns:
            Tuple of (tx_params, side_effect_params, merged build inputs),
            each dumped from the validated models.

        Raises:
            DefinitionValidationError: If either parameter set is invalid.
        """
        try:
            tx = self.build_config.params_schema.model_validate(tx_params)
            se = self.build_config.side_effect_params_schema.model_validate(side_effect_params or {})
        except ValidationError as e:
            raise DefinitionValidationError(
                f"Invalid build inputs for {self.tx_type}", e.errors(include_url=False, include_context=False)
            )

        tx_dump = tx.model_dump(mode="json", exclude_none=True)
        se_dump = se.model_dump(mode="json", exclude_none=True)
        return tx_dump, se_dump, {**tx_dump, **se_dump}

    def summary(self) -> dict[str, Any]:
        """Serializable view of the definition, with JSON schemas for params."""
        data = self.model_dump(mode="json", exclude={"build_config"})
        data["build_config"] = {
            "builder_endpoint": self.build_config.builder_endpoint,
            "params_schema": self.build_config.params_schema.model_json_schema(),
            "side_effect_params_schema": self.build_config.side_effect_params_schema.model_json_schema(),
            "estimated_cost": (
                self.build_config.estimated_cost.model_dump(mode="json")
                if self.build_config.estimated_cost else None
            ),
        }
        return data
