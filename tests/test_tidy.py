"""Tests for tidy procrustes orchestration."""

import numpy as np
import pandas as pd
import pytest
from pandera.errors import SchemaErrors

from procrustes_tidy import assert_procrustes_table, fortify_procrustes, procrustes_test

FAST = {"n_permutations": 19, "seed": 1}


@pytest.fixture
def spec():
    rng = np.random.default_rng(20191224)
    counts = rng.poisson(5.0, size=(12, 6)) + 1
    return pd.DataFrame(counts, columns=[f"sp{i}" for i in range(1, 7)])


@pytest.fixture
def env():
    rng = np.random.default_rng(1224)
    return pd.DataFrame(
        rng.normal(size=(12, 4)),
        columns=["N", "P", "K", "pH"],
    )


class TestProcrustesTest:
    def test_default_blocks(self, spec, env):
        df = procrustes_test(spec, env, **FAST)

        assert list(df.columns) == ["spec", "env", "r", "p_value"]
        assert list(df["spec"]) == ["spec"] * 4
        assert list(df["env"]) == ["N", "P", "K", "pH"]
        assert df.attrs["grouped"] is False
        assert ((df["r"] >= 0) & (df["r"] <= 1 + 1e-12)).all()
        assert ((df["p_value"] > 0) & (df["p_value"] <= 1)).all()

    def test_named_blocks_spec_major(self, spec, env):
        df = procrustes_test(
            spec,
            env,
            spec_select={"spec01": range(0, 3), "spec02": range(3, 6)},
            env_select={"env01": [0, 1], "env02": ["K", "pH"]},
            **FAST,
        )

        assert list(df["spec"]) == ["spec01", "spec01", "spec02", "spec02"]
        assert list(df["env"]) == ["env01", "env02", "env01", "env02"]

    def test_unnamed_blocks_get_prefixed_names(self, spec, env):
        df = procrustes_test(spec, env, spec_select=[[0, 1], [2, 3, 4]], env_select=[0, "P"], **FAST)

        assert list(df["spec"]) == ["spec1", "spec1", "spec2", "spec2"]
        assert list(df["env"]) == ["env1", "env2", "env1", "env2"]

    def test_slice_and_mask_selections(self, spec, env):
        df = procrustes_test(
            spec,
            env,
            spec_select={"first": slice(0, 3)},
            env_select={"mask": [True, False, True, False]},
            **FAST,
        )

        assert len(df) == 1

    def test_label_slice_selection(self, spec, env):
        from procrustes_tidy import protest

        df = procrustes_test(
            spec,
            env,
            spec_select={"mid": slice("sp2", "sp4")},
            env_select={"all": slice(None)},
            **FAST,
        )
        # label slices include the stop label
        direct = protest(spec[["sp2", "sp3", "sp4"]], env, **FAST)

        assert list(df["spec"]) == ["mid"]
        np.testing.assert_almost_equal(df["r"].iloc[0], direct.statistic)

    def test_label_slice_missing_label_raises(self, spec, env):
        with pytest.raises(KeyError, match="block 'bad'"):
            procrustes_test(spec, env, spec_select={"bad": slice("sp2", "sp9")})

    def test_pairs_share_one_random_stream(self, spec, env):
        from procrustes_tidy import protest

        rng = np.random.default_rng(FAST["seed"])
        expected = [
            protest(spec, env[[col]], n_permutations=19, seed=rng).pvalue
            for col in env.columns
        ]
        df = procrustes_test(spec, env, **FAST)

        np.testing.assert_array_almost_equal(df["p_value"].to_numpy(), expected)

    def test_matches_direct_test(self, spec, env):
        from procrustes_tidy import protest

        df = procrustes_test(spec, env, env_select={"all": slice(None)}, **FAST)
        direct = protest(spec, env, **FAST)

        np.testing.assert_almost_equal(df["r"].iloc[0], direct.statistic)
        np.testing.assert_almost_equal(df["p_value"].iloc[0], direct.pvalue)

    @pytest.mark.parametrize("method", ["protest", "procuste.randtest", "procuste.rtest"])
    def test_every_method(self, spec, env, method):
        df = procrustes_test(spec, env, method=method, **FAST)

        assert len(df) == 4
        assert df["r"].notna().all()

    def test_methods_agree_on_statistic(self, spec, env):
        a = procrustes_test(spec, env, method="protest", **FAST)
        b = procrustes_test(spec, env, method="procuste.randtest", **FAST)

        np.testing.assert_array_almost_equal(a["r"], b["r"])

    def test_unknown_method_raises(self, spec, env):
        with pytest.raises(ValueError, match="Unknown procrustes method"):
            procrustes_test(spec, env, method="mantel")

    def test_row_mismatch_raises(self, spec, env):
        with pytest.raises(ValueError, match="'spec' must have the same rows as 'env'."):
            procrustes_test(spec, env.iloc[:10])

    @pytest.mark.parametrize("select", ["sp1", 3, {1, 2}])
    def test_invalid_select_type_raises(self, spec, env, select):
        with pytest.raises(ValueError, match="'spec_select' needs a mapping, a list or None."):
            procrustes_test(spec, env, spec_select=select)

    def test_invalid_env_select_type_raises(self, spec, env):
        with pytest.raises(ValueError, match="'env_select' needs"):
            procrustes_test(spec, env, env_select="N")

    def test_unknown_label_raises(self, spec, env):
        with pytest.raises(KeyError, match="Mg"):
            procrustes_test(spec, env, env_select={"bad": ["Mg"]})

    def test_position_out_of_range_raises(self, spec, env):
        with pytest.raises(IndexError):
            procrustes_test(spec, env, env_select={"bad": [10]})

    def test_empty_block_raises(self, spec, env):
        with pytest.raises(ValueError, match="selects no columns"):
            procrustes_test(spec, env, env_select={"none": []})

    def test_numpy_inputs(self, spec, env):
        df = procrustes_test(spec.to_numpy(), env.to_numpy(), **FAST)

        assert list(df["env"]) == ["0", "1", "2", "3"]

    def test_env_pre_fun_defaults_to_spec(self, spec, env):
        calls = []

        def recorder(x, scale=1.0):
            calls.append((x.shape[1], scale))
            return x * scale

        procrustes_test(spec, env, spec_pre_fun=recorder, spec_pre_params={"scale": 2.0}, **FAST)

        # one spec block, four env blocks, each transformed once
        assert len(calls) == 5
        assert all(scale == 2.0 for _, scale in calls)

    def test_separate_env_pre_fun(self, spec, env):
        seen = []

        def env_fun(x):
            seen.append(list(x.columns))
            return x

        df = procrustes_test(
            spec,
            env,
            spec_pre_fun="mono_mds",
            spec_pre_params={"seed": 0},
            env_pre_fun=env_fun,
            env_pre_params={},
            **FAST,
        )

        assert seen == [["N"], ["P"], ["K"], ["pH"]]
        assert len(df) == 4

    def test_dudi_pca_pre_transform(self, spec, env):
        df = procrustes_test(spec, env, spec_pre_fun="dudi_pca", **FAST)

        assert len(df) == 4

    def test_empty_selection_mapping(self, spec, env):
        df = procrustes_test(spec, env, spec_select={}, **FAST)

        assert len(df) == 0
        assert list(df.columns) == ["spec", "env", "r", "p_value"]


class TestFortifyProcrustes:
    def test_without_group(self, spec, env):
        df = fortify_procrustes(spec, env, **FAST)
        expected = procrustes_test(spec, env, **FAST)

        pd.testing.assert_frame_equal(df, expected)
        assert df.attrs["grouped"] is False

    def test_grouped_results_stacked(self, spec, env):
        group = ["b", "a", "c"] * 4
        df = fortify_procrustes(spec, env, group=group, **FAST)

        assert df.attrs["grouped"] is True
        assert list(df.columns) == ["spec", "env", "r", "p_value", "group"]
        assert list(df["group"]) == ["a"] * 4 + ["b"] * 4 + ["c"] * 4
        assert list(df["env"]) == ["N", "P", "K", "pH"] * 3

    def test_group_matches_subset_analysis(self, spec, env):
        group = np.array(["x"] * 6 + ["y"] * 6)
        df = fortify_procrustes(spec, env, group=group, **FAST)
        subset = procrustes_test(spec.iloc[6:], env.iloc[6:], **FAST)

        np.testing.assert_array_almost_equal(
            df.loc[df["group"] == "y", "r"].to_numpy(), subset["r"].to_numpy()
        )

    def test_missing_group_labels_dropped(self, spec, env):
        group = pd.Series(["a"] * 5 + ["b"] * 5 + [None] * 2, index=range(100, 112))
        df = fortify_procrustes(spec, env, group=group, **FAST)

        assert sorted(df["group"].unique()) == ["a", "b"]
        assert len(df) == 8

    def test_group_kwargs_forwarded(self, spec, env):
        group = ["a"] * 6 + ["b"] * 6
        df = fortify_procrustes(
            spec,
            env,
            group=group,
            method="procuste.rtest",
            env_select={"all": slice(None)},
            **FAST,
        )

        assert len(df) == 2
        assert list(df["env"]) == ["all", "all"]

    def test_group_length_mismatch_raises(self, spec, env):
        with pytest.raises(ValueError, match="Length of 'group' and rows of 'spec' must be same."):
            fortify_procrustes(spec, env, group=["a", "b"])

    def test_row_mismatch_raises(self, spec, env):
        with pytest.raises(ValueError, match="same rows"):
            fortify_procrustes(spec.iloc[:5], env, group=["a"] * 5)


class TestResultSchema:
    def test_valid_table_passes(self):
        df = pd.DataFrame({"spec": ["s"], "env": ["e"], "r": [0.5], "p_value": [0.05]})

        assert_procrustes_table(df)

    def test_p_value_out_of_range_fails(self):
        df = pd.DataFrame({"spec": ["s"], "env": ["e"], "r": [0.5], "p_value": [1.5]})

        with pytest.raises(SchemaErrors):
            assert_procrustes_table(df)

    def test_extra_column_fails(self):
        df = pd.DataFrame(
            {"spec": ["s"], "env": ["e"], "r": [0.5], "p_value": [0.5], "extra": [1]}
        )

        with pytest.raises(SchemaErrors):
            assert_procrustes_table(df)
