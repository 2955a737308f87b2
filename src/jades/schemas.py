############################################################################
# Copyright 2021 Plataux LLC                                               #
#                                                                          #
# Licensed under the Apache License, Version 2.0 (the "License");          #
# you may not use this file except in compliance with the License.         #
# You may obtain a copy of the License at                                  #
#                                                                          #
#    https://www.apache.org/licenses/LICENSE-2.0                           #
#                                                                          #
# Unless required by applicable law or agreed to in writing, software      #
# distributed under the License is distributed on an "AS IS" BASIS,        #
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. #
# See the License for the specific language governing permissions and      #
# limitations under the License.                                           #
############################################################################

"""
JSON schemas of the JAdES protected and unprotected headers.

Each schema is compiled once per process and reused read-only afterwards, so the
validators may be shared between threads.

"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import Draft202012Validator

import jades.exceptions as tex

SCHEMA_DIR = Path(__file__).parent / "data"


@lru_cache(maxsize=None)
def _validator(name: str) -> Draft202012Validator:
    schema = json.loads((SCHEMA_DIR / f"{name}.json").read_text(encoding="utf-8"))
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def protected_validator() -> Draft202012Validator:
    return _validator("protected")


def unprotected_validator() -> Draft202012Validator:
    return _validator("unprotected")


def format_errors(errors: List[str], what: str = "JOSE headers") -> str:
    return f"Invalid {what};\n-> " + ",\n-> ".join(f"{i}: {msg}" for i, msg in enumerate(errors))


def schema_errors(validator: Draft202012Validator, doc: Dict[str, Any]) -> List[str]:
    """
    Every violation found in ``doc``, ordered by location
    """
    errors = sorted(validator.iter_errors(doc), key=lambda e: e.json_path)
    return [f"{err.json_path}: {err.message}" for err in errors]


def validate_protected(doc: Dict[str, Any]) -> None:
    if errors := schema_errors(protected_validator(), doc):
        raise tex.ValidationError(format_errors(errors))


def validate_unprotected(doc: Dict[str, Any]) -> None:
    if errors := schema_errors(unprotected_validator(), doc):
        raise tex.ValidationError(format_errors(errors, "unprotected JOSE headers"))
