# Copyright 2025 Roger Cibrian
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

"""Configuration loading and management for storepkgtool.

This module provides tools for loading and merging the YAML (or JSON)
config file that drives packaging and submission:

  - Built-in defaults (packaging parameters, Store API settings)
  - The user's config file (appSubmission, iapSubmission, packageParameters)

Public API:

- load_config: Load and merge the effective configuration
- default_config: Fresh copy of the built-in defaults
- build_config_template / write_config_template: Generate a new config

Example:
    Basic usage:

        from pathlib import Path
        from storepkgtool.config import load_config

        config = load_config(Path("config.yaml"))
        print(config["packageParameters"]["outName"])

"""

from .loader import (
    build_config_template,
    default_config,
    load_config,
    write_config_template,
)

__all__ = [
    "load_config",
    "default_config",
    "build_config_template",
    "write_config_template",
]
