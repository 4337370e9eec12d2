import re
from pathlib import Path
from datetime import datetime, timedelta, tzinfo
from typing import Self, Optional, Literal, Union, TypeAlias, overload, Any

from pydantic import BaseModel, ConfigDict, GetCoreSchemaHandler
from pydantic_core import CoreSchema, core_schema

DATETIME_FORMAT = r"%Y-%m-%d_%H-%M-%S"
DATETIME_REGEX = r"\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}"

ClockMode = Literal['wallclock', 'domain']


class Datetime(datetime):
    """
    Extended datetime class with whole second precision, used for naming and
    parsing backup files.
    """

    @overload
    def __new__(cls, string: str) -> Self:
        pass

    @overload
    def __new__(cls, dt: datetime) -> Self:
        pass

    @overload
    def __new__(cls,
                year: int,
                month: int,
                day: int,
                hour: int = 0,
                minute: int = 0,
                second: int = 0,
                microsecond: int = 0,
                tzinfo: Optional[tzinfo] = None,
                *,
                fold: Literal[0, 1] = 0):
        pass

    def __new__(cls, *args, **kwargs):
        """
        Create a new Datetime instance from a string, a datetime, or components.
        Strings may be in backup file format or iso format. Microseconds are
        dropped when converting from a datetime.

        Raises:
            ValueError: If the string or components are invalid.
        """
        if (len(args) == 1) and (not kwargs):
            if isinstance(args[0], str):
                string = args[0]
                if re.fullmatch(DATETIME_REGEX, string):
                    return cls.strptime(string, DATETIME_FORMAT)
                return cls(datetime.fromisoformat(string))
            elif isinstance(args[0], datetime):
                dt = args[0]
                return datetime.__new__(cls,
                                        dt.year,
                                        dt.month,
                                        dt.day,
                                        dt.hour,
                                        dt.minute,
                                        dt.second,
                                        tzinfo=dt.tzinfo,
                                        fold=dt.fold)
        return datetime.__new__(cls, *args, **kwargs)

    def __str__(self):
        """
        Return the string representation in backup file datetime format.
        """
        return self.strftime(DATETIME_FORMAT)

    @classmethod
    def now(cls, tz: Optional[tzinfo] = None) -> Self:
        return cls(datetime.now(tz))

    @classmethod
    def __get_pydantic_core_schema__(cls, _: Any, handler: GetCoreSchemaHandler) -> CoreSchema:
        """
        Pydantic core schema for Datetime.
        """
        return core_schema.union_schema([
            core_schema.is_instance_schema(cls),
            core_schema.no_info_after_validator_function(cls, handler(str)),
            core_schema.no_info_after_validator_function(cls, handler(datetime)),
        ])


class RetentionPeriod(int):
    """
    A retention window measured in whole seconds. Accepts human readable
    strings such as '3d', '12h', '1h30m', '90s', '10 minutes', or a bare
    number of seconds.
    """

    _units = {
        'd': 86400, 'day': 86400, 'days': 86400,
        'h': 3600, 'hr': 3600, 'hour': 3600, 'hours': 3600,
        'm': 60, 'min': 60, 'mins': 60, 'minute': 60, 'minutes': 60,
        's': 1, 'sec': 1, 'secs': 1, 'second': 1, 'seconds': 1,
    }
    _token = re.compile(r"\s*(\d+)\s*([a-z]+)\s*,?")

    def __new__(cls, value: Union[str, int, timedelta]):
        """
        Validate and create a new RetentionPeriod.

        Raises:
            ValueError: If the value can not be parsed or is not positive.
        """
        if isinstance(value, timedelta):
            seconds = int(value.total_seconds())
        elif isinstance(value, int):
            seconds = value
        else:
            seconds = cls._parse(str(value))
        if seconds <= 0:
            raise ValueError(f"RetentionPeriod = {value} must be a positive duration")
        return int.__new__(cls, seconds)

    @classmethod
    def _parse(cls, text: str) -> int:
        text = text.strip().lower()
        if text.isdigit():
            return int(text)
        seconds = 0
        position = 0
        for match in cls._token.finditer(text):
            if match.start() != position:
                break
            amount, unit = match.groups()
            if unit not in cls._units:
                raise ValueError(f"RetentionPeriod = {text} has unknown unit '{unit}'")
            seconds += int(amount) * cls._units[unit]
            position = match.end()
        if (position == 0) or (position != len(text)):
            raise ValueError(f"RetentionPeriod = {text} is not a valid duration")
        return seconds

    @property
    def delta(self) -> timedelta:
        return timedelta(seconds=int(self))

    def __str__(self):
        """
        Return the compact representation, e.g. '1h30m'.
        """
        remainder = int(self)
        parts = []
        for unit, size in (('d', 86400), ('h', 3600), ('m', 60), ('s', 1)):
            count, remainder = divmod(remainder, size)
            if count:
                parts.append(f"{count}{unit}")
        return ''.join(parts)

    def __repr__(self):
        return f"RetentionPeriod('{self}')"

    @classmethod
    def __get_pydantic_core_schema__(cls, _: Any, handler: GetCoreSchemaHandler) -> CoreSchema:
        """
        Pydantic core schema for RetentionPeriod, serialized back to its
        compact string form.
        """
        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(cls),
                core_schema.no_info_after_validator_function(cls, core_schema.int_schema(strict=True)),
                core_schema.no_info_after_validator_function(cls, core_schema.str_schema()),
            ],
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


# a wall clock instant or an elapsed domain time counter, never mixed within one run
Timestamp: TypeAlias = Union[Datetime, int]

DEFAULT_RETENTION_PERIODS = tuple(
    RetentionPeriod(p) for p in ('3d', '1d', '12h', '6h', '3h', '1h', '30m', '15m', '10m', '5m'))


class BackupRecord(BaseModel):
    """
    A backup file together with the timestamp recovered from its name.
    """

    model_config = ConfigDict(frozen=True)

    file_path: Path
    timestamp: Timestamp

    def __str__(self):
        return str(self.file_path)


class ChangeSignal(BaseModel):
    """
    Notification that the watched file changed.
    """

    model_config = ConfigDict(frozen=True)

    source_path: Path
