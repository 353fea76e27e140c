"""
Pytest configuration and shared fixtures.

Provides small hand-checkable matrices and a synthetic two-condition data set
with module structure that changes between conditions.
"""

import numpy as np
import pandas as pd
import pytest

from diffcoex.core.expression import ExpressionMatrix
from diffcoex.core.modules import ModuleAssignment
from diffcoex.io.writers import write_condition_matrix


def generate_two_condition_data(
    n_samples_a: int = 12,
    n_samples_b: int = 12,
    module_sizes: dict | None = None,
    rewired: tuple = ("red",),
    seed: int = 42,
) -> tuple:
    """
    Synthetic condition pair with correlated modules.

    In condition A every module follows its own latent pattern. In condition B
    the modules named in ``rewired`` lose that shared pattern (members become
    independent noise); all other modules keep it.

    Returns:
        (condition_a, condition_b, assignment)
    """
    if module_sizes is None:
        module_sizes = {"red": 6, "blue": 5, "green": 4}
    rng = np.random.default_rng(seed)

    gene_ids = []
    labels = []
    for label, size in module_sizes.items():
        for k in range(size):
            gene_ids.append(f"{label}_{k + 1}")
            labels.append(label)

    def condition(n_samples: int, broken: tuple) -> np.ndarray:
        columns = []
        for label, size in module_sizes.items():
            pattern = rng.normal(size=n_samples)
            for _ in range(size):
                noise = rng.normal(scale=0.3, size=n_samples)
                if label in broken:
                    columns.append(rng.normal(size=n_samples))
                else:
                    columns.append(pattern + noise)
        return np.column_stack(columns)

    condition_a = ExpressionMatrix(
        condition(n_samples_a, ()),
        gene_ids=gene_ids,
        sample_ids=[f"A{i + 1}" for i in range(n_samples_a)],
    )
    condition_b = ExpressionMatrix(
        condition(n_samples_b, tuple(rewired)),
        gene_ids=gene_ids,
        sample_ids=[f"B{i + 1}" for i in range(n_samples_b)],
    )
    assignment = ModuleAssignment(dict(zip(gene_ids, labels)))
    return condition_a, condition_b, assignment


@pytest.fixture
def small_matrix():
    """4 samples × 2 genes, both in module 'red'."""
    return ExpressionMatrix(
        np.array([
            [1.0, 2.0],
            [2.0, 1.0],
            [3.0, 4.0],
            [4.0, 3.0],
        ]),
        gene_ids=["g1", "g2"],
    )


@pytest.fixture
def red_assignment():
    return ModuleAssignment({"g1": "red", "g2": "red"})


@pytest.fixture
def red_blue_matrix():
    """5 samples × 4 genes: g1, g2 in 'red', g3, g4 in 'blue'."""
    return ExpressionMatrix(
        np.array([
            [1.0, 5.0, 2.0, 9.0],
            [2.0, 3.0, 8.0, 1.0],
            [3.0, 4.0, 1.0, 7.0],
            [4.0, 1.0, 6.0, 3.0],
            [5.0, 2.0, 4.0, 5.0],
        ]),
        gene_ids=["g1", "g2", "g3", "g4"],
    )


@pytest.fixture
def red_blue_assignment():
    return ModuleAssignment({"g1": "red", "g2": "red", "g3": "blue", "g4": "blue"})


@pytest.fixture
def two_conditions():
    return generate_two_condition_data()


@pytest.fixture
def expression_csv(tmp_path):
    """Genes × samples CSV with a header line."""
    path = tmp_path / "expression.csv"
    frame = pd.DataFrame(
        {
            "S1": [8.0, 2.0, 16.0],
            "S2": [4.0, 8.0, 32.0],
            "S3": [2.0, 16.0, 64.0],
            "S4": [1.0, 4.0, 128.0],
        },
        index=pd.Index(["p1", "p2", "p3"], name="probe"),
    )
    frame.to_csv(path)
    return path


@pytest.fixture
def condition_files(tmp_path):
    """Header-less condition CSVs and a whitespace module file on disk."""
    condition_a, condition_b, assignment = generate_two_condition_data(n_samples_a=8, n_samples_b=8)
    path_a = tmp_path / "a.csv"
    path_b = tmp_path / "b.csv"
    write_condition_matrix(condition_a, path_a)
    write_condition_matrix(condition_b, path_b)

    modules = tmp_path / "modules.txt"
    modules.write_text("".join(f"{gene} {label}\n" for gene, label in assignment.items()))
    return path_a, path_b, modules
