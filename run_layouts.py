import csv
import itertools
import os
import multiprocessing

from ecsim.config import ClusterConfig
from ecsim.durability import DurabilityConfig, DurabilityRunner
from ecsim.simulation.distributions import Exponential, minutes

def _run_single_layout(args):
    data_chunks, parity_chunks, duration = args
    layout_name = f"{data_chunks}+{parity_chunks}"

    # Run sequentially inside to avoid nesting overhead
    config = DurabilityConfig(
        num_trials=200,
        duration=duration,
        cluster=ClusterConfig.for_scheme(data_chunks, parity_chunks),
        base_failure_rate=0.0005,
        repair_time_dist=Exponential(rate=1 / minutes(2)),
        parallel_workers=1,
        base_seed=0,
    )
    results = DurabilityRunner(config).run()

    low, high = results.survival_ci()
    mttdl = results.mean_time_to_data_loss()
    return {
        'name': layout_name,
        'overhead': (data_chunks + parity_chunks) / data_chunks,
        'survival': results.survival_probability(),
        'survival_low': low,
        'survival_high': high,
        'availability': results.mean_availability(),
        'mttdl_s': mttdl if mttdl is not None else float('inf'),
    }

def compute_and_print_pareto(results_list):
    print(f"\n--- Pareto optimal layouts from {len(results_list)} total ---")
    if not results_list:
        return

    pareto_optimal = []
    for r1 in results_list:
        dominated = False
        for r2 in results_list:
            if r1 is r2:
                continue
            better_or_eq = (
                r2['overhead'] <= r1['overhead'] and
                r2['survival'] >= r1['survival']
            )
            strictly_better = (
                r2['overhead'] < r1['overhead'] or
                r2['survival'] > r1['survival']
            )
            if better_or_eq and strictly_better:
                dominated = True
                break
        if not dominated:
            pareto_optimal.append(r1)

    pareto_optimal.sort(key=lambda x: (-x['survival'], x['overhead']))
    for r in pareto_optimal:
        print(f"  {r['name']} | Survival: {r['survival']*100:.1f}% "
              f"[{r['survival_low']*100:.1f}, {r['survival_high']*100:.1f}] "
              f"| Avail: {r['availability']*100:.3f}% | Overhead: {r['overhead']:.2f}x")
    print("-" * 50, flush=True)

def main():
    duration = minutes(30)
    layouts = [
        (k, m) for k, m in itertools.product([2, 3, 4, 6, 8], [1, 2, 3])
        if m <= k
    ]
    print(f"Total layouts: {len(layouts)}", flush=True)

    csv_file = 'ec_layouts.csv'
    fieldnames = ['name', 'overhead', 'survival', 'survival_low', 'survival_high',
                  'availability', 'mttdl_s']
    existing_results = []
    existing_names = set()

    if os.path.exists(csv_file):
        with open(csv_file, 'r', newline='') as f:
            for row in csv.DictReader(f):
                existing_results.append({
                    key: (row[key] if key == 'name' else float(row[key]))
                    for key in fieldnames
                })
                existing_names.add(row['name'])

    print(f"Loaded {len(existing_results)} existing results from {csv_file}.", flush=True)

    worker_args = [
        (k, m, duration) for k, m in layouts if f"{k}+{m}" not in existing_names
    ]
    print(f"{len(worker_args)} layouts remaining to run.", flush=True)

    results_list = list(existing_results)
    if not worker_args:
        compute_and_print_pareto(results_list)
        return

    write_header = not os.path.exists(csv_file)
    with multiprocessing.Pool(processes=os.cpu_count()) as pool, \
            open(csv_file, 'w' if write_header else 'a', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        if write_header:
            writer.writeheader()

        for idx, res in enumerate(pool.imap_unordered(_run_single_layout, worker_args)):
            results_list.append(res)
            writer.writerow(res)
            f.flush()
            print(f"Completed {idx+1}/{len(worker_args)}: {res['name']} "
                  f"| Survival: {res['survival']*100:.1f}% "
                  f"| Avail: {res['availability']*100:.3f}%", flush=True)

    compute_and_print_pareto(results_list)

if __name__ == '__main__':
    main()
