"""
Tests for GA operations: selection, crossover, and mutation.
"""

import unittest
import numpy as np

from windfarm_ga.config import CROSSOVER_MODES, SELECTION_MODES
from windfarm_ga.data_models import Individual
from windfarm_ga.selection import (
    fitness_dispersion,
    pair_parents,
    select_parents,
    selection_fraction,
)
from windfarm_ga.crossover import (
    combination_indices,
    crossover_pair,
    crossover_population,
    crossover_statistics,
    cut_points,
    segment_count,
)
from windfarm_ga.mutation import (
    count_best_duplicates,
    mutate,
    mutation_rate_for_generation,
    mutation_statistics,
)

from factories import make_population


class TestSelection(unittest.TestCase):
    """Test parent selection and pairing."""

    def setUp(self):
        self.rng = np.random.default_rng(42)
        self.population = make_population([50, 10, 90, 30, 70, 20, 80, 40, 60, 100])

    def test_fix_keeps_half(self):
        """FIX selection keeps the better half."""
        result = select_parents(self.population, "FIX", elitism=False, n_elite=0, rng=self.rng)

        self.assertEqual(len(result.selected), 5)
        self.assertEqual(len(result.pairs), 2)
        self.assertEqual(result.fraction, 0.5)
        self.assertEqual(result.elites, [])

    def test_selected_are_the_fittest(self):
        """Selected parents are the highest ranked."""
        result = select_parents(self.population, "FIX", elitism=False, n_elite=0, rng=self.rng)

        selected_fitness = sorted(m.park_fitness for m in result.selected)
        self.assertEqual(selected_fitness, [60.0, 70.0, 80.0, 90.0, 100.0])

    def test_pairs_use_distinct_selected_parents(self):
        """Each selected parent is paired at most once."""
        result = select_parents(self.population, "FIX", elitism=False, n_elite=0, rng=self.rng)

        selected_ids = {m.individual.id for m in result.selected}
        paired_ids = [m.individual.id for pair in result.pairs for m in pair]

        self.assertEqual(len(paired_ids), len(set(paired_ids)))
        self.assertTrue(set(paired_ids) <= selected_ids)

    def test_elites_are_top_ranked(self):
        """Elites are the top of the ranking."""
        result = select_parents(self.population, "FIX", elitism=True, n_elite=3, rng=self.rng)

        self.assertEqual([m.park_fitness for m in result.elites], [100.0, 90.0, 80.0])

    def test_elite_count_clamped(self):
        """Asking for more elites than members returns them all."""
        population = make_population([5, 6, 7])
        result = select_parents(population, "FIX", elitism=True, n_elite=6, rng=self.rng)

        self.assertEqual(len(result.elites), 3)

    def test_at_least_two_selected(self):
        """Small fractions still select a pair."""
        population = make_population([1, 2, 3])
        result = select_parents(
            population, "FIX", elitism=False, n_elite=0, rng=self.rng, fraction=0.1
        )

        self.assertEqual(len(result.selected), 2)
        self.assertEqual(len(result.pairs), 1)

    def test_var_fraction_grows_with_dispersion(self):
        """A diverse generation is selected more broadly than a converged one."""
        converged = make_population([100, 100, 100, 100])
        slightly = make_population([100, 101, 99, 100])
        diverse = make_population([10, 100, 50, 200])

        low = selection_fraction(converged, "VAR")
        mid = selection_fraction(slightly, "VAR")
        high = selection_fraction(diverse, "VAR")

        self.assertAlmostEqual(low, 0.2)
        self.assertAlmostEqual(high, 0.8)
        self.assertLess(low, mid)
        self.assertLess(mid, high)

    def test_fix_ignores_dispersion(self):
        """FIX uses its fixed fraction whatever the spread."""
        self.assertEqual(selection_fraction(make_population([1, 100]), "FIX"), 0.5)
        self.assertEqual(selection_fraction(make_population([5, 5]), "fix", fix_fraction=0.3), 0.3)

    def test_dispersion(self):
        """Dispersion is the coefficient of variation."""
        self.assertEqual(fitness_dispersion(make_population([7])), 0.0)
        self.assertEqual(fitness_dispersion(make_population([0, 0])), 0.0)
        self.assertAlmostEqual(fitness_dispersion(make_population([1, 3])), 0.5)

    def test_unknown_mode(self):
        """An unknown mode raises ValueError."""
        with self.assertRaises(ValueError):
            select_parents(self.population, "TOP", elitism=False, n_elite=0, rng=self.rng)
        with self.assertRaises(ValueError):
            select_parents(
                self.population, "TOP", elitism=False, n_elite=0, rng=self.rng, fraction=0.5
            )

    def test_configured_modes_are_accepted(self):
        """Every selection mode the configuration allows is accepted."""
        for mode in SELECTION_MODES:
            with self.subTest(mode=mode):
                result = select_parents(self.population, mode, elitism=False, n_elite=0, rng=self.rng)
                self.assertGreaterEqual(len(result.selected), 2)

    def test_too_small_population(self):
        """One individual cannot be paired."""
        with self.assertRaises(ValueError):
            select_parents(make_population([1]), "FIX", elitism=False, n_elite=0, rng=self.rng)

    def test_pair_parents_odd_count(self):
        """The odd parent out is left unpaired."""
        pairs = pair_parents(make_population([1, 2, 3, 4, 5]), self.rng)
        self.assertEqual(len(pairs), 2)

    def test_selection_is_reproducible(self):
        """The same seed gives the same pairs."""
        first = select_parents(self.population, "VAR", True, 2, np.random.default_rng(7))
        second = select_parents(self.population, "VAR", True, 2, np.random.default_rng(7))

        ids = lambda result: [(a.individual.id, b.individual.id) for a, b in result.pairs]
        self.assertEqual(ids(first), ids(second))


class TestCrossover(unittest.TestCase):
    """Test segment crossover."""

    def setUp(self):
        self.rng = np.random.default_rng(42)
        self.parent_a = np.array([1, 1, 1, 1, 0, 0, 0, 0], dtype=np.uint8)
        self.parent_b = np.array([0, 0, 0, 0, 1, 1, 1, 1], dtype=np.uint8)

    def test_segment_count(self):
        """The crossover rate is rounded up to a segment count."""
        self.assertEqual(segment_count(1.1), 2)
        self.assertEqual(segment_count(2.5), 3)
        self.assertEqual(segment_count(4.9), 5)
        self.assertEqual(segment_count(4.9, n_grids=3), 3)
        with self.assertRaises(ValueError):
            segment_count(0)

    def test_cut_point_count_matches_rate(self):
        """There is one cut fewer than segments."""
        for u, expected in ((1.1, 1), (2.5, 2), (4.9, 4)):
            with self.subTest(u=u):
                cuts = cut_points(20, segment_count(u), "EQU", self.rng)
                self.assertEqual(len(cuts), expected)

    def test_equal_cut_points(self):
        """EQU cuts split the layout evenly."""
        np.testing.assert_array_equal(cut_points(8, 2, "EQU", self.rng), [4])
        np.testing.assert_array_equal(cut_points(10, 3, "EQU", self.rng), [3, 6])

    def test_random_cut_points(self):
        """RAN cuts are distinct, sorted and inside the layout."""
        cuts = cut_points(20, 5, "RAN", self.rng)

        self.assertEqual(len(cuts), 4)
        self.assertEqual(len(set(cuts.tolist())), 4)
        self.assertTrue(np.all(np.diff(cuts) > 0))
        self.assertTrue(np.all((cuts >= 1) & (cuts <= 19)))

    def test_single_point_crossover_pair(self):
        """u=1.1 on 8 cells cuts once at 4 and yields the two classic children."""
        offspring, info = crossover_pair(
            self.parent_a, self.parent_b, 1.1, 300, "EQU", self.rng
        )

        self.assertEqual(info['cut_points'], [4])
        self.assertEqual(info['segments'], 2)
        self.assertEqual(offspring.shape, (8, 2))

        children = {tuple(offspring[:, i].tolist()) for i in range(2)}
        self.assertEqual(children, {(0,) * 8, (1,) * 8})

    def test_segments_come_from_either_parent(self):
        """Each segment is copied from one parent."""
        parent_a = np.array([1, 0, 1, 0, 1, 0, 1, 0], dtype=np.uint8)
        parent_b = 1 - parent_a

        offspring, info = crossover_pair(parent_a, parent_b, 1.1, 300, "EQU", self.rng)

        # combination 1: first segment from B; combination 2: second segment from B
        np.testing.assert_array_equal(offspring[:, 0], np.concatenate([parent_b[:4], parent_a[4:]]))
        np.testing.assert_array_equal(offspring[:, 1], np.concatenate([parent_a[:4], parent_b[4:]]))

    def test_bound_with_parent_clones(self):
        """Without exclusion the column count is min(2^segments, uplimit)."""
        offspring, _ = crossover_pair(
            self.parent_a, self.parent_b, 4.9, 300, "EQU", self.rng, exclude_parent_clones=False
        )
        self.assertEqual(offspring.shape, (8, 32))

        offspring, _ = crossover_pair(
            self.parent_a, self.parent_b, 4.9, 10, "EQU", self.rng, exclude_parent_clones=False
        )
        self.assertEqual(offspring.shape, (8, 10))

    def test_subsampled_combinations_are_distinct(self):
        """Subsampled children are all different."""
        parent_a = np.zeros(20, dtype=np.uint8)
        parent_b = np.ones(20, dtype=np.uint8)

        offspring, info = crossover_pair(parent_a, parent_b, 6, 25, "EQU", self.rng)

        self.assertEqual(offspring.shape[1], 25)
        self.assertEqual(len(set(info['combinations'])), 25)
        columns = {tuple(offspring[:, i].tolist()) for i in range(offspring.shape[1])}
        self.assertEqual(len(columns), 25)

    def test_offspring_are_binary(self):
        """Offspring stay binary uint8."""
        offspring, _ = crossover_pair(self.parent_a, self.parent_b, 3, 300, "RAN", self.rng)

        self.assertEqual(offspring.dtype, np.uint8)
        self.assertTrue(np.isin(offspring, (0, 1)).all())

    def test_combination_indices(self):
        """Indices skip the parent clones unless asked."""
        np.testing.assert_array_equal(combination_indices(2, 300, self.rng), [1, 2])
        np.testing.assert_array_equal(
            combination_indices(2, 300, self.rng, exclude_parent_clones=False), [0, 1, 2, 3]
        )
        sampled = combination_indices(10, 50, self.rng)
        self.assertEqual(len(sampled), 50)
        self.assertTrue(np.all(np.diff(sampled) > 0))
        self.assertTrue(sampled.min() >= 1 and sampled.max() <= 2 ** 10 - 2)

    def test_unknown_mode(self):
        """An unknown mode raises ValueError."""
        with self.assertRaises(ValueError):
            crossover_pair(self.parent_a, self.parent_b, 2, 300, "UNI", self.rng)

    def test_configured_modes_are_accepted(self):
        """Every crossover mode the configuration allows is accepted."""
        for mode in CROSSOVER_MODES:
            with self.subTest(mode=mode):
                offspring, _ = crossover_pair(self.parent_a, self.parent_b, 2, 300, mode, self.rng)
                self.assertEqual(offspring.shape[0], 8)

    def test_mismatched_parents(self):
        """Parents must have the same length."""
        with self.assertRaises(ValueError):
            crossover_pair(self.parent_a, self.parent_b[:5], 2, 300, "EQU", self.rng)

    def test_population_pool_capped(self):
        """The pooled offspring are capped at uplimit."""
        pairs = [
            (Individual(id=f"a{i}", bits=self.parent_a), Individual(id=f"b{i}", bits=self.parent_b))
            for i in range(5)
        ]

        pool, origins, notes = crossover_population(pairs, 4.9, 40, "EQU", self.rng)

        self.assertEqual(pool.shape, (8, 40))
        self.assertEqual(len(origins), 40)
        self.assertTrue(any("capped" in note for note in notes))

    def test_population_pool_uncapped(self):
        """Offspring are pooled in pair order."""
        pairs = [
            (Individual(id="a", bits=self.parent_a), Individual(id="b", bits=self.parent_b)),
            (Individual(id="c", bits=self.parent_b), Individual(id="d", bits=self.parent_a)),
        ]

        pool, origins, _ = crossover_population(pairs, 2, 300, "EQU", self.rng)

        self.assertEqual(pool.shape, (8, 4))
        self.assertEqual(origins, [("a", "b"), ("a", "b"), ("c", "d"), ("c", "d")])

    def test_crossover_statistics(self):
        """Statistics count turbines and novel children."""
        offspring, _ = crossover_pair(self.parent_a, self.parent_b, 1.1, 300, "EQU", self.rng)
        stats = crossover_statistics(offspring, self.parent_a, self.parent_b)

        self.assertEqual(stats['n_offspring'], 2)
        self.assertEqual(stats['min_turbines'], 0)
        self.assertEqual(stats['max_turbines'], 8)
        self.assertEqual(stats['novel_offspring'], 2)


class TestMutation(unittest.TestCase):
    """Test bit-flip mutation and the variable rate."""

    def setUp(self):
        self.rng = np.random.default_rng(42)
        self.offspring = np.random.default_rng(0).integers(0, 2, size=(30, 12)).astype(np.uint8)

    def test_zero_rate_is_identity(self):
        """A zero rate changes nothing."""
        mutated, log = mutate(self.offspring, 0.0, self.rng)

        np.testing.assert_array_equal(mutated, self.offspring)
        self.assertEqual(len(log), 1)

    def test_full_rate_flips_every_bit(self):
        """A rate of one inverts every bit."""
        mutated, _ = mutate(self.offspring, 1.0, self.rng)

        np.testing.assert_array_equal(mutated, 1 - self.offspring)

    def test_shape_preserved(self):
        """Mutation keeps the shape and the binary values."""
        mutated, _ = mutate(self.offspring, 0.3, self.rng)

        self.assertEqual(mutated.shape, self.offspring.shape)
        self.assertTrue(np.isin(mutated, (0, 1)).all())

    def test_flip_rate(self):
        """Bits flip at the requested rate."""
        offspring = np.zeros((200, 50), dtype=np.uint8)
        mutated, _ = mutate(offspring, 0.1, self.rng)

        self.assertAlmostEqual(mutated.mean(), 0.1, delta=0.02)

    def test_invalid_rate(self):
        """Rates outside [0, 1] are rejected."""
        with self.assertRaises(ValueError):
            mutate(self.offspring, 1.5, self.rng)
        with self.assertRaises(ValueError):
            mutate(self.offspring, -0.1, self.rng)

    def test_mutation_statistics(self):
        """Statistics count changed bits and columns."""
        mutated, _ = mutate(self.offspring, 1.0, self.rng)
        stats = mutation_statistics(self.offspring, mutated)

        self.assertEqual(stats['bits_changed'], self.offspring.size)
        self.assertEqual(stats['columns_changed'], 12)
        self.assertEqual(stats['change_rate'], 1.0)

    def test_variable_rate_triggered(self):
        """More than two individuals at the best fitness raise the rate."""
        population = make_population([100, 100, 100, 20, 10])

        self.assertEqual(count_best_duplicates(population), 3)
        rate, triggered = mutation_rate_for_generation(population, 0.008, self.rng)

        self.assertTrue(triggered)
        self.assertGreaterEqual(rate, 0.03)
        self.assertLessEqual(rate, 0.1)

    def test_variable_rate_not_triggered(self):
        """Two best duplicates keep the base rate without a draw."""
        population = make_population([100, 100, 20, 10])
        state = self.rng.bit_generator.state

        rate, triggered = mutation_rate_for_generation(population, 0.008, self.rng)

        self.assertFalse(triggered)
        self.assertEqual(rate, 0.008)
        self.assertEqual(self.rng.bit_generator.state, state)

    def test_variable_rate_never_lowers(self):
        """A high base rate is kept when the variable rate triggers."""
        population = make_population([5, 5, 5])
        rate, triggered = mutation_rate_for_generation(population, 0.5, self.rng)

        self.assertTrue(triggered)
        self.assertEqual(rate, 0.5)


if __name__ == '__main__':
    unittest.main()
