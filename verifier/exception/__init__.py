# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Collection of Exceptions & Errors
"""
from .verification_errors import *  # noqa: F401,F403
