"""Demo runner: distribute observers for every grade from sample JSON.

This is meant for quick validation and for demos.

Usage:
    python scripts/run_observer_demo.py [term] [seed]

"""

from __future__ import annotations

import logging
import random
from pathlib import Path
import sys

# Ensure project root is on PYTHONPATH when running as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from observation import AssignmentSnapshot, AssignmentStore, ObservationError, audit_snapshot, load_problem_from_json
from utils.observation_export import distribution_sheet_df, observer_workload_df


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    term = sys.argv[1] if len(sys.argv) > 1 else "term1"
    seed = int(sys.argv[2]) if len(sys.argv) > 2 else 7

    problem = load_problem_from_json(str(ROOT / "data" / "sample_observation_problem.json"))
    store = AssignmentStore.from_problem(problem, AssignmentSnapshot(term=term))
    rng = random.Random(seed)

    for grade in problem.grades():
        try:
            result = store.auto_distribute(grade, rng=rng)
        except ObservationError as exc:
            print(f"Skipping {grade}: {exc.reason}")
            continue

        df = distribution_sheet_df(
            snapshot=store.snapshot,
            sessions=problem.sessions_for(grade, term),
            committees=problem.committees_for(grade),
            observers=problem.observers,
            slots=problem.config.observers_per_committee,
        )
        print(f"\n=== {grade} ({result.filled_slots}/{result.total_slots} seats filled) ===")
        print(df.to_string(index=False))

    print("\n=== Observer workload ===")
    wl = observer_workload_df(snapshot=store.snapshot, observers=problem.observers, index=store.index)
    print(wl.to_string(index=False))

    print("\n=== Audit ===")
    violations = audit_snapshot(store.snapshot, store.index, problem.observers, problem.committees)
    if not violations:
        print("No violations.")
    for v in violations:
        print(f"{v.kind}: {v.observer_id} in {v.session_id}/{v.committee_id} ({v.detail})")


if __name__ == "__main__":
    main()
