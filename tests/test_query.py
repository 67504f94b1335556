"""
Tests for the fluent SCIM query builder.
"""
from datetime import datetime, timezone

import pytest

from osiam_client import (
    InvalidAttributeError,
    Query,
    QueryBuilder,
    QueryStateError,
    ResourceType,
    SortOrder,
)
from osiam_client.query import BuilderState
from osiam_client.schema import USER_ATTRIBUTES, is_attribute_valid


class TestFilterExpressions:

    @pytest.fixture
    def builder(self):
        return QueryBuilder(ResourceType.USER)

    def test_equal_to_without_paging_has_no_parameters(self, builder):
        query = builder.query("userName").equal_to("bjensen").build()
        assert str(query) == 'userName eq "bjensen"'

    def test_nested_and_clause(self, builder):
        query = (builder.query("name.familyName").equal_to("Doe")
                 .and_("active").equal_to("true")
                 .build())
        assert str(query) == 'name.familyName eq "Doe" and active eq "true"'

    def test_or_clause(self, builder):
        query = (builder.query("userName").starts_with("b")
                 .or_("displayName").contains("Babs")
                 .build())
        assert str(query) == 'userName sw "b" or displayName co "Babs"'

    def test_present_has_no_value(self, builder):
        query = builder.query("emails.value").present().build()
        assert str(query) == "emails.value pr "

    @pytest.mark.parametrize("method,token", [
        ("equal_to", "eq"),
        ("contains", "co"),
        ("starts_with", "sw"),
        ("greater_than", "gt"),
        ("greater_equals", "ge"),
        ("less_than", "lt"),
        ("less_equals", "le"),
    ])
    def test_operator_tokens(self, builder, method, token):
        filter = builder.query("meta.created")
        query = getattr(filter, method)("2013-08-08").build()
        assert str(query) == f'meta.created {token} "2013-08-08"'

    def test_clause_order_is_kept(self, builder):
        query = (builder.query("userName").equal_to("a")
                 .or_("userName").equal_to("b")
                 .and_("active").equal_to("true")
                 .or_("title").present()
                 .build())
        assert str(query) == 'userName eq "a" or userName eq "b" and active eq "true" or title pr '

    def test_empty_value_is_not_quoted(self, builder):
        assert str(builder.query("title").equal_to("").build()) == "title eq "

    def test_quotes_in_value_are_not_escaped(self, builder):
        query = builder.query("displayName").equal_to('Babs "B" Jensen').build()
        assert query.filter == 'displayName eq "Babs "B" Jensen"'

    def test_bool_and_datetime_values(self, builder):
        created = datetime(2013, 8, 8, 17, 46, 20, 638000, tzinfo=timezone.utc)
        query = (builder.query("active").equal_to(True)
                 .and_("meta.created").greater_than(created)
                 .build())
        assert str(query) == 'active eq "true" and meta.created gt "2013-08-08T17:46:20.638+00:00"'


class TestPagingParameters:

    def test_count_and_start_index_order(self):
        query = (QueryBuilder(ResourceType.USER)
                 .query("userName").equal_to("bjensen")
                 .count_per_page(20)
                 .start_index(40)
                 .build())
        assert str(query) == 'userName eq "bjensen"&count=20&startIndex=40'
        assert "&sortOrder=" not in str(query)

    def test_sort_order_comes_first(self):
        query = (QueryBuilder(ResourceType.USER)
                 .start_index(3)
                 .count_per_page(5)
                 .with_sort_order(SortOrder.DESCENDING)
                 .query("userName").present()
                 .build())
        assert str(query) == "userName pr &sortOrder=descending&count=5&startIndex=3"

    def test_defaults_are_omitted(self):
        query = QueryBuilder().count_per_page(100).start_index(0).build()
        assert str(query) == ""
        assert query.params() == {}

    def test_negative_and_zero_values_are_accepted(self):
        query = QueryBuilder().count_per_page(0).start_index(-1).build()
        assert str(query) == "&count=0&startIndex=-1"

    def test_params(self):
        query = (QueryBuilder()
                 .query("userName").equal_to("bjensen")
                 .with_sort_order("ascending")
                 .count_per_page(20)
                 .build())
        assert query.params() == {
            "filter": 'userName eq "bjensen"',
            "sortOrder": "ascending",
            "count": 20,
        }


class TestQueryParse:

    def test_parse_keeps_clause_order(self):
        original = (QueryBuilder()
                    .query("userName").equal_to("b")
                    .or_("name.givenName").starts_with("B")
                    .and_("active").equal_to("true")
                    .with_sort_order(SortOrder.ASCENDING)
                    .count_per_page(10)
                    .start_index(2)
                    .build())
        parsed = Query.parse(str(original))
        assert parsed == original
        assert str(parsed) == str(original)

    def test_parse_filter_only(self):
        assert Query.parse('userName eq "x"') == Query(filter='userName eq "x"')

    def test_parse_unknown_parameter(self):
        with pytest.raises(InvalidAttributeError):
            Query.parse('userName eq "x"&sortBy=userName')

    def test_parse_invalid_number(self):
        with pytest.raises(InvalidAttributeError):
            Query.parse('userName eq "x"&count=many')


class TestAttributeValidation:

    @pytest.mark.parametrize("attribute", sorted(USER_ATTRIBUTES))
    def test_all_user_attributes_are_queryable(self, attribute):
        QueryBuilder(ResourceType.USER).query(attribute)

    @pytest.mark.parametrize("attribute", ["USERNAME", "DisplayName", "name.FAMILYNAME"])
    def test_case_insensitive(self, attribute):
        QueryBuilder().query(attribute)

    def test_prefix_is_case_sensitive(self):
        with pytest.raises(InvalidAttributeError):
            QueryBuilder().query("Emails.value")

    @pytest.mark.parametrize("attribute", ["foo", "user", "userNames", "", "members"])
    def test_unknown_attribute(self, attribute):
        with pytest.raises(InvalidAttributeError):
            QueryBuilder(ResourceType.USER).query(attribute)

    @pytest.mark.parametrize("attribute", [
        "meta.created",
        "meta.lastModified",
        "meta.location",
        "meta.version",
        "meta.resourceType",
        "emails.value",
        "emails.type",
        "emails.primary",
        "emails.display",
        "name.familyName",
        "name.givenName",
        "name.formatted",
    ])
    def test_nested_attributes(self, attribute):
        QueryBuilder().query(attribute)

    @pytest.mark.parametrize("attribute", ["meta.familyName", "name.value", "emails.created"])
    def test_nested_attribute_checked_against_companion_type(self, attribute):
        with pytest.raises(InvalidAttributeError):
            QueryBuilder().query(attribute)

    def test_unrecognised_prefix_is_checked_against_root(self):
        assert not is_attribute_valid("phoneNumbers.value", USER_ATTRIBUTES)
        with pytest.raises(InvalidAttributeError):
            QueryBuilder().query("phoneNumbers.value")

    def test_prefix_recursion_ignores_nested_type(self):
        assert is_attribute_valid("meta.name.givenName", USER_ATTRIBUTES)

    def test_group_attributes(self):
        QueryBuilder("Group").query("displayName").equal_to("admins")
        QueryBuilder(ResourceType.GROUP).query("members").present()
        with pytest.raises(InvalidAttributeError):
            QueryBuilder(ResourceType.GROUP).query("userName")

    def test_unknown_resource_type(self):
        with pytest.raises(InvalidAttributeError):
            QueryBuilder("Device")

    def test_and_writes_connector_before_validation(self):
        builder = QueryBuilder().query("userName").equal_to("a")
        with pytest.raises(InvalidAttributeError):
            builder.and_("unknown")
        assert str(builder.query("title").present().build()) == 'userName eq "a" and title pr '


class TestBuilderState:

    def test_state_transitions(self):
        builder = QueryBuilder()
        assert builder.state is BuilderState.AWAITING_ATTRIBUTE
        filter = builder.query("userName")
        assert builder.state is BuilderState.AWAITING_OPERATOR
        filter.equal_to("x")
        assert builder.state is BuilderState.AWAITING_ATTRIBUTE
        builder.build()
        assert builder.state is BuilderState.BUILT

    def test_query_while_operator_pending(self):
        builder = QueryBuilder()
        builder.query("userName")
        with pytest.raises(QueryStateError):
            builder.query("title")
        with pytest.raises(QueryStateError):
            builder.and_("title")

    def test_build_while_operator_pending(self):
        builder = QueryBuilder()
        builder.query("userName")
        with pytest.raises(QueryStateError):
            builder.build()

    def test_filter_can_only_be_applied_once(self):
        builder = QueryBuilder()
        filter = builder.query("userName")
        filter.equal_to("x")
        with pytest.raises(QueryStateError):
            filter.contains("y")

    def test_reuse_after_build(self):
        builder = QueryBuilder().query("userName").equal_to("x")
        builder.build()
        with pytest.raises(QueryStateError):
            builder.build()
        with pytest.raises(QueryStateError):
            builder.and_("title")
        with pytest.raises(QueryStateError):
            builder.count_per_page(10)

    def test_query_is_immutable(self):
        query = QueryBuilder().query("userName").equal_to("x").build()
        with pytest.raises(AttributeError):
            query.filter = "title pr "
