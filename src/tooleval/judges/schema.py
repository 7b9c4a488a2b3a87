"""JSON Schema validation judge."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Union

from tooleval.judges import JudgeError, JudgeInput, JudgeResult


@dataclass
class SchemaJudge:
    """Validate the output as JSON against a JSON Schema.

    The schema may be given inline (a JSON string or a mapping) or as
    ``schema_file``.
    """

    name: ClassVar[str] = "schema"
    value_field: ClassVar[str] = "schema"

    schema: Optional[Union[str, Dict[str, Any]]] = None
    schema_file: Optional[str] = None

    def _load_schema(self) -> Dict[str, Any]:
        try:
            if isinstance(self.schema, dict):
                return self.schema
            if self.schema:
                return json.loads(self.schema)
            if self.schema_file is not None:
                with open(self.schema_file) as f:
                    return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise JudgeError(f"invalid JSON schema: {exc}") from exc
        raise JudgeError("schema judge requires 'schema' or 'schema_file'")

    async def evaluate(self, judge_input: JudgeInput) -> JudgeResult:
        import jsonschema

        schema = self._load_schema()
        validator_cls = jsonschema.validators.validator_for(schema)
        try:
            validator_cls.check_schema(schema)
        except jsonschema.SchemaError as exc:
            raise JudgeError(f"invalid JSON schema: {exc.message}") from exc

        try:
            data = json.loads(judge_input.output)
        except (json.JSONDecodeError, TypeError) as exc:
            return JudgeResult(passed=False, score=0.0, reason=f"output is not valid JSON: {exc}")

        error = jsonschema.exceptions.best_match(validator_cls(schema).iter_errors(data))
        if error is not None:
            return JudgeResult(
                passed=False, score=0.0, reason=f"output does not match schema: {error.message}",
            )
        return JudgeResult(passed=True, score=1.0, reason="output matches JSON schema")
