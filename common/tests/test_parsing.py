# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import base64
import json

import common.parsing as parsing


def test_interpret_as_bool():
    assert parsing.interpret_as_bool("True")
    assert parsing.interpret_as_bool("true")
    assert parsing.interpret_as_bool("TrUe")
    assert parsing.interpret_as_bool("yes")
    assert parsing.interpret_as_bool("y")
    assert parsing.interpret_as_bool("1")
    assert parsing.interpret_as_bool(1)
    assert parsing.interpret_as_bool(True)
    assert not parsing.interpret_as_bool("False")
    assert not parsing.interpret_as_bool("Falee")
    assert not parsing.interpret_as_bool("Truee")
    assert not parsing.interpret_as_bool("no")
    assert not parsing.interpret_as_bool("n")
    assert not parsing.interpret_as_bool("0")
    assert not parsing.interpret_as_bool(0)
    assert not parsing.interpret_as_bool(False)


def test_url_safe_round_trip_without_padding():
    data = {"thid": "claim-1", "body": {"id": "claim-1"}}
    encoded = parsing.remove_padding(parsing.object_to_url_safe(data))
    assert "=" not in encoded
    assert parsing.object_from_url_safe(encoded) == data


def test_base64_matches_standard_encoding():
    data = {"v": "??>>"}
    encoded = parsing.object_to_base64(data)
    assert encoded == base64.b64encode(json.dumps(data).encode()).decode()
    assert parsing.object_from_base64(parsing.remove_padding(encoded)) == data
