# Copyright 2024 The ingressgw Authors. All rights reserved.
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
# limitations under the License

import logging
import os
import re
from typing import Any, List, Optional, Union

import orjson
import yaml

logger = logging.getLogger("ingressgw.utils")

# There doesn't seem to be a way to convince mypy that SafeLoader and
# CSafeLoader share a base class, even though they do.

yaml_loader: Any = yaml.SafeLoader
yaml_dumper: Any = yaml.SafeDumper

try:
    yaml_loader = yaml.CSafeLoader
except AttributeError:
    pass

try:
    yaml_dumper = yaml.CSafeDumper
except AttributeError:
    pass


def parse_yaml(serialization: str) -> Any:
    return list(yaml.load_all(serialization, Loader=yaml_loader))


def dump_yaml(obj: Any, **kwargs) -> str:
    return yaml.dump(obj, Dumper=yaml_dumper, **kwargs)


def dump_yaml_all(objs: List[Any], **kwargs) -> str:
    return yaml.dump_all(objs, Dumper=yaml_dumper, **kwargs)


def parse_json(serialization: str) -> Any:
    return orjson.loads(serialization)


def dump_json(obj: Any, pretty=False) -> str:
    if pretty:
        return bytes.decode(
            orjson.dumps(
                obj, option=orjson.OPT_NON_STR_KEYS | orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2
            )
        )
    else:
        return bytes.decode(orjson.dumps(obj, option=orjson.OPT_NON_STR_KEYS))


_true_values = frozenset(["y", "yes", "t", "true", "on", "1"])


def parse_bool(s: Optional[Union[str, bool]]) -> bool:
    """
    Parse a boolean value from a string. T, True, Y, y, 1 return True;
    other things return False.
    """

    # If `s` is already a bool, return its value.
    if isinstance(s, bool):
        return s

    # If we didn't get anything at all, return False.
    if not s:
        return False

    return s.strip().lower() in _true_values


def env_log_level(name: str, default: int = logging.INFO) -> int:
    """
    Read a log level name (DEBUG, INFO, ...) from the environment variable
    `name`, falling back to `default` when it's unset or unknown.
    """

    value = os.environ.get(name)

    if not value:
        return default

    level = logging.getLevelName(value.strip().upper())

    if isinstance(level, int):
        return level

    logger.warning("ignoring unknown log level %s=%s", name, value)
    return default


def trim_quotes(s: str) -> str:
    if len(s) >= 2:
        if s[0] == '"' and s[-1] == '"':
            return s[1:-1]
        if s[0] == "'" and s[-1] == "'":
            return s[1:-1]

    return s


def split_by_separator(content: str, separator: str) -> List[str]:
    parts = [part.strip() for part in content.split(separator)]
    return [part for part in parts if part]


_whitespace = re.compile(r"\s+")


def split_key_value(line: str) -> List[str]:
    # Split on the first run of whitespace only: the value may itself
    # contain spaces.
    return _whitespace.split(line.strip(), maxsplit=1)
