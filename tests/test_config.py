"""Tests for configuration models and file loading.

Covers rule parsing into tagged variants, retain parsing (count and date
threshold), date formats, the foreign-key integrity precedence, connection
validation, and YAML/JSON/TOML loading and saving.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
import yaml

from db_anonymiser.config.loader import load_dump_config, save_dump_config
from db_anonymiser.config.models import (
    ConnectionSettings,
    CountLimit,
    DateThreshold,
    DumpConfig,
    FakerRule,
    Full,
    NullRule,
    StaticValueRule,
    TableRules,
    Truncate,
    parse_column_rule,
    parse_date,
)
from db_anonymiser.errors import ConfigurationError, DumpError

from conftest import make_config

YAML_CONFIG = """\
connection:
  type: mysql
  host: localhost
  username: root
  password: secret
  database_name: shop
foreign_key_integrity: true
configuration:
  users:
    columns:
      email: "{{faker.email}}"
      notes: null
      status: inactive
  orders:
    retain: 100
    foreign_key_integrity: false
  audit_log:
    truncate: true
  events:
    retain:
      column_name: created_at
      after_date: "2024-01-01"
  sessions:
"""


class TestColumnRules:
    """Raw rule values become exactly one tagged variant."""

    @pytest.mark.parametrize("raw", [None, "", "null"])
    def test_null_forms(self, raw) -> None:
        assert parse_column_rule(raw) == NullRule()

    def test_faker_template(self) -> None:
        assert parse_column_rule("{{faker.email}}") == FakerRule(function="email")

    def test_faker_template_inside_text(self) -> None:
        """The template may be surrounded by other text; the name is extracted."""
        assert parse_column_rule("user-{{faker.uuid}}") == FakerRule(function="uuid")

    def test_literal(self) -> None:
        assert parse_column_rule("inactive") == StaticValueRule(value="inactive")

    def test_null_is_case_sensitive(self) -> None:
        assert parse_column_rule("NULL") == StaticValueRule(value="NULL")

    def test_numbers_become_literals(self) -> None:
        assert parse_column_rule(0) == StaticValueRule(value="0")
        assert parse_column_rule(True) == StaticValueRule(value="true")

    def test_mapping_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_column_rule({"faker": "email"})

    def test_to_raw_round_trip(self) -> None:
        for raw in ["{{faker.email}}", "inactive", None]:
            assert parse_column_rule(raw).to_raw() == raw


class TestParseDate:
    """All four supported formats parse; anything else is a config error."""

    def test_date_only(self) -> None:
        assert parse_date("2024-01-01") == datetime(2024, 1, 1)

    def test_iso_t_separator(self) -> None:
        assert parse_date("2024-01-01T10:30:00") == datetime(2024, 1, 1, 10, 30)

    def test_space_separator(self) -> None:
        assert parse_date("2024-01-01 10:30:00") == datetime(2024, 1, 1, 10, 30)

    def test_rfc3339_with_zone(self) -> None:
        parsed = parse_date("2024-01-01T10:30:00+02:00")
        assert parsed.utcoffset() == timedelta(hours=2)

    def test_rfc3339_utc_suffix(self) -> None:
        assert parse_date("2024-01-01T10:30:00Z").tzinfo is not None

    @pytest.mark.parametrize("text", ["01/02/2024", "yesterday", "2024-13-01", ""])
    def test_invalid(self, text) -> None:
        with pytest.raises(ConfigurationError, match="supported formats"):
            parse_date(text)


class TestRetain:
    """``retain`` is decided once, at load time."""

    def test_integer_is_count_limit(self) -> None:
        assert TableRules(retain=5).retain == CountLimit(count=5)

    def test_zero_means_no_limit(self) -> None:
        rules = TableRules(retain=0)
        assert rules.retain is None
        assert rules.policy == Full()

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            TableRules(retain=-1)

    def test_object_is_date_threshold(self) -> None:
        rules = TableRules(retain={"column_name": "created_at", "after_date": "2024-01-01"})
        assert rules.retain == DateThreshold(column="created_at", after=datetime(2024, 1, 1))

    def test_native_date_from_yaml(self) -> None:
        """Unquoted YAML dates arrive as ``datetime.date``."""
        data = yaml.safe_load("retain:\n  column_name: created_at\n  after_date: 2024-01-01\n")
        assert TableRules.model_validate(data).retain.after == datetime(2024, 1, 1)

    def test_object_missing_column(self) -> None:
        with pytest.raises(ValueError, match="column_name"):
            TableRules(retain={"after_date": "2024-01-01"})

    def test_bad_date(self) -> None:
        with pytest.raises(ValueError, match="could not parse date"):
            TableRules(retain={"column_name": "created_at", "after_date": "soon"})

    def test_truncate_wins(self) -> None:
        assert TableRules(truncate=True, retain=10).policy == Truncate()

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            TableRules(retian=10)


class TestForeignKeyIntegrity:
    """Table override, then global default, then disabled."""

    def test_absent_everywhere_is_disabled(self) -> None:
        config = make_config({"orders": {}})
        assert config.should_enforce_fk_integrity("orders") is False
        assert config.should_enforce_fk_integrity("unlisted") is False

    def test_global_default(self) -> None:
        config = make_config({"orders": {}}, foreign_key_integrity=True)
        assert config.should_enforce_fk_integrity("orders") is True
        assert config.should_enforce_fk_integrity("unlisted") is True

    def test_table_overrides_global(self) -> None:
        config = make_config(
            {"orders": {"foreign_key_integrity": False}}, foreign_key_integrity=True
        )
        assert config.should_enforce_fk_integrity("orders") is False

    def test_table_enables_without_global(self) -> None:
        config = make_config({"orders": {"foreign_key_integrity": True}})
        assert config.should_enforce_fk_integrity("orders") is True


class TestConnectionSettings:
    def test_unknown_type(self) -> None:
        with pytest.raises(ValueError, match="invalid connection type"):
            ConnectionSettings(type="oracle", host="h", database_name="d")

    def test_sqlite_requires_file(self) -> None:
        with pytest.raises(ValueError, match="file"):
            ConnectionSettings(type="sqlite")

    def test_server_requires_host_and_database(self) -> None:
        with pytest.raises(ValueError, match="host"):
            ConnectionSettings(type="postgres", database_name="shop")
        with pytest.raises(ValueError, match="database_name"):
            ConnectionSettings(type="postgres", host="localhost")

    def test_default_ports(self) -> None:
        mysql = ConnectionSettings(type="mysql", host="db", database_name="shop")
        pg = ConnectionSettings(type="postgres", host="db", database_name="shop")
        assert mysql.url().port == 3306
        assert pg.url().port == 5432

    def test_async_drivers(self) -> None:
        assert ConnectionSettings(type="sqlite", file="x.db").url().drivername == "sqlite+aiosqlite"
        pg = ConnectionSettings(type="postgres", host="db", database_name="shop", port=6543)
        assert pg.url().drivername == "postgresql+asyncpg"
        assert pg.url().port == 6543

    def test_password_not_in_repr(self) -> None:
        settings = ConnectionSettings(
            type="mysql", host="db", database_name="shop", password="hunter2"
        )
        assert "hunter2" not in repr(settings)


class TestDumpConfig:
    def test_add_table_keeps_existing(self) -> None:
        config = make_config({"users": {"truncate": True}})
        assert config.add_table("users") is False
        assert config.table_rules("users").truncate is True
        assert config.add_table("orders") is True
        assert config.list_tables() == ["users", "orders"]
        assert config.has_table("orders")

    def test_table_rules_missing(self) -> None:
        assert make_config().table_rules("nope") is None

    def test_to_document(self) -> None:
        config = make_config(
            {
                "users": {"columns": {"email": "{{faker.email}}", "notes": None}},
                "orders": {"retain": 5},
                "events": {"retain": {"column_name": "created_at", "after_date": "2024-01-01"}},
            }
        )
        doc = config.to_document()
        assert doc["connection"] == {"type": "sqlite", "file": ":memory:"}
        assert doc["configuration"]["users"] == {
            "columns": {"email": "{{faker.email}}", "notes": None}
        }
        assert doc["configuration"]["orders"] == {"retain": 5}
        assert doc["configuration"]["events"]["retain"] == {
            "column_name": "created_at",
            "after_date": "2024-01-01",
        }
        assert DumpConfig.model_validate(doc).configuration == config.configuration

    def test_aware_threshold_keeps_zone(self) -> None:
        after = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        rules = TableRules(retain=DateThreshold(column="ts", after=after))
        assert rules.to_document()["retain"]["after_date"] == after.isoformat()


class TestLoader:
    """Loading by extension, errors as ``ConfigurationError``."""

    def test_load_yaml(self, tmp_path) -> None:
        path = tmp_path / "dump.yaml"
        path.write_text(YAML_CONFIG)
        config = load_dump_config(path)

        assert config.connection.type == "mysql"
        assert config.foreign_key_integrity is True
        users = config.table_rules("users")
        assert users.columns["email"] == FakerRule(function="email")
        assert users.columns["notes"] == NullRule()
        assert users.columns["status"] == StaticValueRule(value="inactive")
        assert config.table_rules("orders").policy == CountLimit(count=100)
        assert config.table_rules("audit_log").policy == Truncate()
        assert config.table_rules("events").policy == DateThreshold(
            column="created_at", after=datetime(2024, 1, 1)
        )
        assert config.table_rules("sessions") == TableRules()

    def test_load_json(self, tmp_path) -> None:
        path = tmp_path / "dump.json"
        path.write_text(json.dumps(yaml.safe_load(YAML_CONFIG)))
        assert load_dump_config(path).table_rules("orders").retain == CountLimit(count=100)

    def test_load_toml(self, tmp_path) -> None:
        path = tmp_path / "dump.toml"
        path.write_text(
            '[connection]\ntype = "sqlite"\nfile = "shop.db"\n\n'
            "[configuration.users]\nretain = 3\n\n"
            '[configuration.users.columns]\nemail = "{{faker.email}}"\n'
        )
        config = load_dump_config(path)
        assert config.table_rules("users").retain == CountLimit(count=3)
        assert config.table_rules("users").columns["email"] == FakerRule(function="email")

    def test_unknown_extension_falls_back(self, tmp_path) -> None:
        path = tmp_path / "dump.conf"
        path.write_text(YAML_CONFIG)
        assert load_dump_config(path).connection.database_name == "shop"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_dump_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "dump.yaml"
        path.write_text("connection: [unclosed\n")
        with pytest.raises(ConfigurationError, match="YAML"):
            load_dump_config(path)

    def test_validation_error_is_configuration_error(self, tmp_path) -> None:
        path = tmp_path / "dump.yaml"
        path.write_text("connection:\n  type: oracle\n")
        with pytest.raises(ConfigurationError, match="invalid connection type") as exc_info:
            load_dump_config(path)
        assert isinstance(exc_info.value, DumpError)

    def test_top_level_must_be_mapping(self, tmp_path) -> None:
        path = tmp_path / "dump.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_dump_config(path)

    def test_save_yaml_round_trip(self, tmp_path) -> None:
        source = tmp_path / "dump.yaml"
        source.write_text(YAML_CONFIG)
        config = load_dump_config(source)
        config.add_table("invoices", TableRules(truncate=True))

        target = tmp_path / "saved.yaml"
        save_dump_config(config, target)
        reloaded = load_dump_config(target)
        assert reloaded.configuration == config.configuration
        assert reloaded.connection == config.connection

    def test_save_json(self, tmp_path) -> None:
        target = tmp_path / "saved.json"
        save_dump_config(make_config({"users": {"retain": 2}}), target)
        assert json.loads(target.read_text())["configuration"]["users"] == {"retain": 2}

    def test_save_toml_rejected(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError, match="TOML"):
            save_dump_config(make_config(), tmp_path / "dump.toml")
