"""Tests for Parameters type generation and the type registry."""

import math

import pytest

from tracerbox.errors import EmptyParameterTableError, TypeRedefinitionWarning, UnknownParameterError
from tracerbox.parameters import (
    Parameters,
    ParametersRegistry,
    ParametersSchema,
    default_registry,
    empty_parameter_table,
    generate_parameters_type,
)


class TestGenerateParametersType:
    """Tests for generate_parameters_type."""

    def test_empty_table_raises(self, registry):
        """Test that an empty table cannot generate a type."""
        with pytest.raises(EmptyParameterTableError):
            generate_parameters_type(empty_parameter_table(), "Empty", registry=registry)
        assert "Empty" not in registry

    def test_generated_type_is_parameters_subclass(self, Mixed):
        """Test the generated class and its name."""
        assert issubclass(Mixed, Parameters)
        assert Mixed.__name__ == "Mixed"
        assert isinstance(Mixed(), Parameters)

    def test_fields_are_table_rows_in_order(self, Mixed):
        """Test that fields follow table order with canonical defaults."""
        p = Mixed()
        assert list(p.to_dict()) == ["a", "b", "c", "d"]
        assert p.a == 1.0
        assert p.b == 2.0
        assert p.c == 3.0
        assert p.d == 4.0

    def test_schema(self, Mixed):
        """Test the schema carried by the generated class."""
        schema = Mixed.schema
        assert isinstance(schema, ParametersSchema)
        assert schema.names == ("a", "b", "c", "d")
        assert schema.optimizable == (True, False, True, False)
        assert schema.optimizable_names == ("a", "c")
        assert schema.fixed_names == ("b", "d")
        assert schema.units == ("dimensionless", "meter", "dimensionless", "second")
        assert schema.n_fields == 4
        assert schema.n_optimizable == 2
        assert schema.index["c"] == 2
        assert schema.mean_obs[2] == 2.5
        assert math.isnan(schema.mean_obs[1])

    def test_schema_index_is_read_only(self, Mixed):
        """Test that the name index cannot be mutated."""
        with pytest.raises(TypeError):
            Mixed.schema.index["e"] = 4

    def test_docstring_lists_fields(self, c14_table, registry):
        """Test that the generated docstring documents each field."""
        C14 = generate_parameters_type(c14_table, "C14Params", registry=registry)
        assert "τ [second, fixed]: radioactive decay e-folding timescale" in C14.__doc__
        assert "λ [meter / second, fixed]" in C14.__doc__

    def test_unicode_fields_are_attributes(self, c14_table, registry):
        """Test attribute access to unicode parameter names."""
        C14 = generate_parameters_type(c14_table, "C14Params", registry=registry)
        p = C14()
        assert p.τ == pytest.approx(5730 * 365.25 * 86400 / math.log(2))
        assert p.λ == pytest.approx(5 / (365.25 * 86400))

    def test_later_table_changes_do_not_affect_type(self, mixed_table, Mixed):
        """Test that generation is a one-time snapshot of the table."""
        mixed_table.add("e", 5.0, optimizable=True)
        mixed_table.delete("a")
        p = Mixed()
        assert list(p.to_dict()) == ["a", "b", "c", "d"]
        assert len(p) == 2

    def test_slots_prevent_unknown_attributes(self, Mixed):
        """Test that instances only have the table's fields."""
        p = Mixed()
        with pytest.raises(AttributeError):
            p.zz = 1.0

    @pytest.mark.parametrize("type_name", ["", "1Bad", "has space", None])
    def test_invalid_type_name_raises(self, mixed_table, registry, type_name):
        """Test that type names must be identifiers."""
        with pytest.raises(ValueError, match="type_name"):
            generate_parameters_type(mixed_table, type_name, registry=registry)

    @pytest.mark.parametrize("name", ["copy", "optvec", "schema", "get"])
    def test_names_colliding_with_methods_raise(self, registry, name):
        """Test that parameter names may not shadow Parameters attributes."""
        t = empty_parameter_table()
        t.add(name, 1.0)
        with pytest.raises(ValueError, match="collide"):
            generate_parameters_type(t, "Clash", registry=registry)

    def test_base_class_cannot_be_instantiated(self):
        """Test that the abstract base class refuses instantiation."""
        with pytest.raises(TypeError, match="generate_parameters_type"):
            Parameters()


class TestParametersRegistry:
    """Tests for the explicit type registry."""

    def test_register_and_get(self, Mixed, registry):
        """Test that generated types are registered by name."""
        assert "Mixed" in registry
        assert registry.get("Mixed") is Mixed
        assert registry.names() == ["Mixed"]
        assert len(registry) == 1

    def test_get_unknown_raises(self, registry):
        """Test that unknown type names raise."""
        with pytest.raises(UnknownParameterError, match="Unknown Parameters type"):
            registry.get("Nope")

    def test_redefinition_warns_and_replaces(self, mixed_table, Mixed, registry):
        """Test that reusing a name warns and replaces the registered type."""
        with pytest.warns(TypeRedefinitionWarning, match="already used"):
            Mixed2 = generate_parameters_type(mixed_table, "Mixed", registry=registry)
        assert registry.get("Mixed") is Mixed2
        assert Mixed2 is not Mixed

    def test_redefinition_reports_changed_fields(self, mixed_table, Mixed, registry):
        """Test that the warning says when the set of parameters changed."""
        mixed_table.add("e", 5.0)
        with pytest.warns(TypeRedefinitionWarning, match="set of parameters changed"):
            generate_parameters_type(mixed_table, "Mixed", registry=registry)

    def test_stale_instances_never_equal_new_ones(self, mixed_table, Mixed, registry):
        """Test that instances of a replaced type are distinct from the new type's."""
        old = Mixed()
        with pytest.warns(TypeRedefinitionWarning):
            New = generate_parameters_type(mixed_table, "Mixed", registry=registry)
        assert old != New()
        assert old == Mixed()

    def test_separate_registries_do_not_warn(self, mixed_table, registry, recwarn):
        """Test that registries are independent."""
        generate_parameters_type(mixed_table, "Mixed", registry=registry)
        generate_parameters_type(mixed_table, "Mixed", registry=ParametersRegistry())
        assert not [w for w in recwarn if issubclass(w.category, TypeRedefinitionWarning)]

    def test_default_registry_is_used_without_argument(self, mixed_table):
        """Test that the process-wide registry is the default."""
        name = "DefaultRegistryProbe"
        try:
            cls = generate_parameters_type(mixed_table, name)
            assert default_registry.get(name) is cls
        finally:
            if name in default_registry:
                default_registry.unregister(name)

    def test_unregister(self, Mixed, registry):
        """Test removing a type from a registry."""
        assert registry.unregister("Mixed") is Mixed
        assert "Mixed" not in registry
        with pytest.raises(UnknownParameterError):
            registry.unregister("Mixed")

    def test_repr(self, Mixed, registry):
        """Test registry repr lists type names."""
        assert repr(registry) == "ParametersRegistry(['Mixed'])"


class TestParametersSchema:
    """Tests for schema validation."""

    def _columns(self, names):
        n = len(names)
        return dict(
            names=tuple(names),
            optimizable=(False,) * n,
            values=(1.0,) * n,
            units=("dimensionless",) * n,
            display_units=("dimensionless",) * n,
            mean_obs=(math.nan,) * n,
            variance_obs=(math.nan,) * n,
            descriptions=("",) * n,
        )

    def test_duplicate_names_raise(self):
        """Test that a schema rejects duplicate names."""
        with pytest.raises(ValueError, match="Duplicate"):
            ParametersSchema(**self._columns(["x", "x"]))

    def test_misaligned_columns_raise(self):
        """Test that all columns must have one entry per name."""
        columns = self._columns(["x", "y"])
        columns["values"] = (1.0,)
        with pytest.raises(ValueError, match="values"):
            ParametersSchema(**columns)

    def test_empty_raises(self):
        """Test that a schema needs at least one field."""
        with pytest.raises(EmptyParameterTableError):
            ParametersSchema(**self._columns([]))
