import dataclasses
from typing import Any, Optional

import pytest

from ctrltools.arguments import ArgumentType, RawArguments
from ctrltools.definitions import (
    Definition,
    MarkerParseError,
    TargetType,
    make_any_type_definition,
    make_definition,
    marker_field,
    split_marker,
)
from ctrltools.scanner import ScannerError


class WrappedMarkerVal(str):
    pass


@dataclasses.dataclass
class MultiFieldStruct:
    str_: str
    int_: int
    bool_: bool
    any: Any
    ptr_opt: Optional[str]
    normal_opt: str = marker_field(optional=True)
    diff_named: str = marker_field(name="other")
    both_tags: str = marker_field(name="both", optional=True)
    slice_: list[int] = marker_field()
    slice_of_slice: list[list[int]] = marker_field()


@dataclasses.dataclass
class AllOptionalStruct:
    opt_str: str = marker_field(optional=True)
    opt_int: Optional[int] = None


@dataclasses.dataclass
class CustomType:
    value: Any = None


@dataclasses.dataclass
class Empty:
    pass


@dataclasses.dataclass
class WithPrivate:
    visible: int
    _hidden: int = 0


SLICE_OUT = [99, 104, 101, 101, 115, 101]
SLICE_OF_SLICE_OUT = [[1, 1], [2, 3], [5, 8]]


def multi_field():
    return make_definition("testing:multiField", TargetType.PACKAGE, MultiFieldStruct)


def test_multi_field_all_fields():
    raw = (
        '+testing:multiField:str=some str,int=42,bool=true,any=21,ptrOpt="optional string",'
        'normalOpt="other string",other="yet another",both="and one more",'
        "slice=99;104;101;101;115;101,sliceOfSlice={{1,1},{2,3},{5,8}}"
    )
    assert multi_field().parse(raw) == MultiFieldStruct(
        str_="some str",
        int_=42,
        bool_=True,
        any=21,
        ptr_opt="optional string",
        normal_opt="other string",
        diff_named="yet another",
        both_tags="and one more",
        slice_=SLICE_OUT,
        slice_of_slice=SLICE_OF_SLICE_OUT,
    )


def test_multi_field_any_order():
    raw = (
        "+testing:multiField:int=42,str=some str,any=21,bool=true,any=21,"
        'sliceOfSlice={{1,1},{2,3},{5,8}},slice=99;104;101;101;115;101,other="yet another"'
    )
    assert multi_field().parse(raw) == MultiFieldStruct(
        str_="some str",
        int_=42,
        bool_=True,
        any=21,
        ptr_opt=None,
        diff_named="yet another",
        slice_=SLICE_OUT,
        slice_of_slice=SLICE_OF_SLICE_OUT,
    )


def test_multi_field_leaving_out_optional():
    raw = (
        '+testing:multiField:str=some str,bool=true,any=21,other="yet another",'
        "slice=99;104;101;101;115;101,sliceOfSlice={{1,1},{2,3},{5,8}},int=42"
    )
    result = multi_field().parse(raw)
    assert result == MultiFieldStruct(
        str_="some str",
        int_=42,
        bool_=True,
        any=21,
        ptr_opt=None,
        normal_opt="",
        diff_named="yet another",
        both_tags="",
        slice_=SLICE_OUT,
        slice_of_slice=SLICE_OF_SLICE_OUT,
    )


def test_missing_values_error():
    with pytest.raises(MarkerParseError) as info:
        multi_field().parse("+testing:multiField:str=`hi`")
    assert info.value.value.str_ == "hi"
    assert any('missing argument "int"' in str(err) for err in info.value.errors)
    assert all(isinstance(err, ScannerError) for err in info.value.errors)


def test_not_strict_allows_missing():
    definition = multi_field()
    definition.strict = False
    result = definition.parse("+testing:multiField:str=`hi`")
    assert result.str_ == "hi"
    assert result.int_ == 0
    assert result.slice_ == []


def test_multi_field_definition_fields():
    definition = multi_field()
    assert set(definition.fields) == {
        "str", "int", "bool", "any", "ptrOpt", "normalOpt",
        "other", "both", "slice", "sliceOfSlice",
    }
    assert definition.field_names["other"] == "diff_named"
    assert definition.field_names["sliceOfSlice"] == "slice_of_slice"
    assert definition.fields["ptrOpt"].pointer and definition.fields["ptrOpt"].optional
    assert definition.fields["normalOpt"].optional and not definition.fields["normalOpt"].pointer
    assert not definition.fields["str"].optional
    assert definition.fields["sliceOfSlice"].type_string() == "[][]int"


def test_all_optional_without_arguments():
    definition = make_definition("testing:allOptional", TargetType.PACKAGE, AllOptionalStruct)
    assert definition.parse("+testing:allOptional") == AllOptionalStruct()


def test_empty_marker():
    definition = make_definition("testing:empty", TargetType.PACKAGE, Empty)
    assert definition.empty()
    assert definition.parse("+testing:empty") == Empty()


def test_empty_marker_rejects_arguments():
    definition = make_definition("testing:empty", TargetType.PACKAGE, Empty)
    with pytest.raises(MarkerParseError, match="extra arguments provided"):
        definition.parse("+testing:empty=foo")


def test_anonymous_literal():
    definition = make_definition("testing:anonymous:literal", TargetType.PACKAGE, str)
    assert definition.anonymous_field()
    assert definition.parse("+testing:anonymous:literal=foo") == "foo"


def test_anonymous_named():
    definition = make_definition("testing:anonymous:named", TargetType.PACKAGE, WrappedMarkerVal)
    result = definition.parse("+testing:anonymous:named=foo")
    assert result == "foo"
    assert isinstance(result, WrappedMarkerVal)


def test_anonymous_optional():
    definition = make_definition("testing:anonymousOptional", TargetType.PACKAGE, Optional[int])
    assert definition.fields[""].optional
    assert definition.parse("+testing:anonymousOptional") is None


def test_raw_arguments():
    definition = make_definition("testing:raw", TargetType.PACKAGE, RawArguments)
    result = definition.parse("+testing:raw=this;totally,doesn't;get,parsed")
    assert result == "this;totally,doesn't;get,parsed"
    assert isinstance(result, RawArguments)


def test_multi_segment_name():
    definition = make_definition("testing:multi:segment", TargetType.PACKAGE, int)
    assert definition.parse("+testing:multi:segment=42") == 42


def test_any_type_definition():
    definition = make_any_type_definition("testing:custom", TargetType.PACKAGE, CustomType)
    assert definition.field_names == {"": "value"}
    assert definition.fields[""].type is ArgumentType.ANY
    assert definition.parse("+testing:custom={hi}") == CustomType(value=["hi"])


def test_unknown_argument():
    with pytest.raises(MarkerParseError, match='unknown argument "nope"'):
        multi_field().parse("+testing:multiField:nope=1")


def test_private_fields_skipped():
    definition = make_definition("testing:private", TargetType.TYPE, WithPrivate)
    assert set(definition.fields) == {"visible"}
    assert definition.parse("+testing:private:visible=3") == WithPrivate(visible=3)


def test_raw_arguments_field_rejected():
    @dataclasses.dataclass
    class BadRaw:
        raw: RawArguments

    with pytest.raises(TypeError, match="RawArguments must be the direct type"):
        make_definition("testing:bad", TargetType.PACKAGE, BadRaw)


def test_unsupported_field_type_rejected():
    @dataclasses.dataclass
    class BadSet:
        items: set

    with pytest.raises(TypeError, match='unable to extract type information for field "items"'):
        make_definition("testing:bad", TargetType.PACKAGE, BadSet)


def test_unsupported_anonymous_type_rejected():
    with pytest.raises(TypeError, match="unsupported kind"):
        make_definition("testing:bad", TargetType.PACKAGE, set)


def test_definition_flags():
    definition = Definition(name="x", target=TargetType.FIELD, output=int)
    assert definition.empty()
    assert not definition.anonymous_field()
    assert definition.strict


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+a:b:c=arg,d=arg", ("a:b", "a:b:c", "arg,d=arg")),
        ("+a:b", ("a:b", "a:b", "")),
        ("+a=1", ("a", "a", "1")),
        ("+a:b=x=y", ("a", "a:b", "x=y")),
    ],
)
def test_split_marker(raw, expected):
    assert split_marker(raw) == expected


@pytest.mark.parametrize(
    "target, text",
    [(TargetType.PACKAGE, "package"), (TargetType.TYPE, "type"), (TargetType.FIELD, "field")],
)
def test_target_type_string(target, text):
    assert str(target) == text
    assert f"{target}" == text