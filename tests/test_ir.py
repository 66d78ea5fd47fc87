"""Tests for IR models and naming helpers."""
import pytest

from skimatic.ir import (
    Column,
    Index,
    Parameter,
    Query,
    QueryType,
    Table,
    is_valid_identifier,
    to_pascal_case,
    to_snake_case,
)


# ============================================================================
# Naming
# ============================================================================

@pytest.mark.parametrize("name,expected", [
    ("user_accounts", "UserAccounts"),
    ("created_at", "CreatedAt"),
    ("USER_ID", "UserId"),
    ("GetUser", "GetUser"),
    ("getUser", "GetUser"),
    ("id", "Id"),
    ("", ""),
])
def test_to_pascal_case(name, expected):
    assert to_pascal_case(name) == expected


@pytest.mark.parametrize("name,expected", [
    ("UserAccounts", "user_accounts"),
    ("getUserByEmail", "get_user_by_email"),
    ("users", "users"),
    ("", ""),
])
def test_to_snake_case(name, expected):
    assert to_snake_case(name) == expected


def test_is_valid_identifier():
    assert is_valid_identifier("GetUser")
    assert is_valid_identifier("_private2")
    assert not is_valid_identifier("2fast")
    assert not is_valid_identifier("get-user")
    assert not is_valid_identifier("")


# ============================================================================
# Models
# ============================================================================

class TestQueryType:
    def test_parse_is_case_insensitive(self):
        assert QueryType.parse("ONE") is QueryType.ONE
        assert QueryType.parse("Paginated") is QueryType.PAGINATED

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="invalid query type: first"):
            QueryType.parse("first")

    def test_returns_rows(self):
        assert QueryType.MANY.returns_rows
        assert not QueryType.EXEC.returns_rows


class TestColumn:
    def test_generated_names(self):
        column = Column(name="created_at", type="timestamptz")
        assert column.field_name == "CreatedAt"
        assert column.struct_tag == 'json:"created_at" db:"created_at"'


class TestTable:
    def make_table(self, primary_key):
        return Table(
            name="user_profiles",
            schema="public",
            columns=[Column(name="id", type="uuid"), Column(name="org_id", type="uuid")],
            primary_key=primary_key,
            indexes=[Index(name="idx_org", columns=["org_id"])],
        )

    def test_primary_key_column(self):
        table = self.make_table(["id"])
        assert table.primary_key_column() is table.columns[0]

    def test_primary_key_column_composite(self):
        assert self.make_table(["id", "org_id"]).primary_key_column() is None
        assert self.make_table([]).primary_key_column() is None

    def test_get_column(self):
        table = self.make_table(["id"])
        assert table.get_column("org_id").name == "org_id"
        assert table.get_column("missing") is None

    def test_generated_names(self):
        table = self.make_table(["id"])
        assert table.struct_name == "UserProfiles"
        assert table.file_name == "user_profiles_generated.go"
        assert table.qualified_name == "public.user_profiles"

    def test_to_dict(self):
        data = self.make_table(["id"]).to_dict()
        assert data["name"] == "user_profiles"
        assert data["columns"][0] == {
            "name": "id",
            "type": "uuid",
            "go_type": "",
            "is_nullable": False,
            "is_array": False,
            "default_value": "",
            "max_length": 0,
            "field_name": "Id",
            "struct_tag": 'json:"id" db:"id"',
        }
        assert data["struct_name"] == "UserProfiles"
        assert data["file_name"] == "user_profiles_generated.go"
        assert data["indexes"] == [{"name": "idx_org", "columns": ["org_id"], "is_unique": False}]


class TestQuery:
    def test_parameter_defaults(self):
        param = Parameter(index=3)
        assert param.name == "param3"
        assert param.type == "text"
        assert param.go_type == "string"

    def test_generated_names(self):
        query = Query(
            name="GetUserByEmail",
            sql="SELECT 1",
            type=QueryType.ONE,
            source_file="queries/UserQueries.sql",
        )
        assert query.function_name == "GetUserByEmail"
        assert query.file_name == "user_queries_queries_generated.go"
        assert query.returns_rows

    def test_to_dict_renders_kind(self):
        query = Query(name="Touch", sql="UPDATE t SET x = 1", type=QueryType.EXEC)
        data = query.to_dict()
        assert data["type"] == "exec"
        assert data["parameters"] == []
        assert data["columns"] == []
        assert data["function_name"] == "Touch"
        assert "file_name" not in data

    def test_to_dict_names_for_emitter(self):
        query = Query(
            name="list_users",
            sql="SELECT id FROM users",
            type=QueryType.MANY,
            columns=[Column(name="user_id", type="uuid", go_type="pgtype.UUID", is_nullable=True)],
            source_file="queries/users.sql",
        )
        data = query.to_dict()
        assert data["function_name"] == "ListUsers"
        assert data["file_name"] == "users_queries_generated.go"
        assert data["columns"][0]["field_name"] == "UserId"
