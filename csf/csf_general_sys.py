"""
Contains system related functions (paths, workers, ray start-up).

Created on Mon Oct 19 09:31:47 2026
# -*- coding: utf-8 -*-
"""
from gc import collect
from math import floor
from pathlib import Path
from typing import Any

from psutil import cpu_count, virtual_memory
import ray

from csf import csf_print_stats_functions as csf_ps


def delete_file_if_exists(file_name: Path) -> None:
    """Delete existing file."""
    if file_name.exists():
        Path.unlink(file_name)


def define_outpath(outpath: Path | str | None,
                   new_outpath: bool = True,
                   ) -> Path:
    """Verify outpath and create new one if needed."""
    match outpath:
        case str() as s if s:
            outpath = Path(s)
        case Path():
            pass
        case _:
            outpath = Path.cwd() / 'output_csf'

    if new_outpath:
        out_temp = outpath
        for i in range(1000):
            if not out_temp.is_dir():
                try:
                    out_temp.mkdir(parents=True)
                except OSError as oserr:
                    raise OSError(f'Creation of the directory {out_temp}'
                                  ' failed') from oserr
                outpath = out_temp
                break
            out_temp = outpath.with_name(f'{outpath.name}{i}')
    elif not outpath.is_dir():
        try:
            outpath.mkdir(parents=True)
        except OSError as oserr:
            raise OSError(
                f'Creation of the directory {outpath} failed') from oserr

    return outpath


def default_no_of_workers() -> int:
    """Use 80% of the logical cores (at least one)."""
    return max(1, round((cpu_count(logical=True) or 1) * 0.8))


def find_no_of_workers(maxworkers: int,
                       sys_share: float = 0,
                       zero_tol: float = 1e-15
                       ) -> int:
    """
    Find the number of workers for MP such that system does not crash.

    Parameters
    ----------
    maxworkers : Int. Maximum number of workers allowed.
    sys_share: Float. Share of memory reserved for the system. Default is 0.

    Returns
    -------
    workers : Int. Workers used.
    """
    share_used = getattr(virtual_memory(), 'percent') / 100
    if sys_share >= share_used:
        sys_share = 0.9 * share_used
    sys_share = sys_share / 2
    if share_used - sys_share <= zero_tol:
        return max(1, maxworkers)
    workers = (1 - sys_share) / (share_used - sys_share)
    if workers > maxworkers:
        workers = maxworkers
    elif workers < 1.9:
        workers = 1
    else:
        workers = maxworkers

    return max(1, floor(workers + zero_tol))


def init_ray_with_fallback(maxworkers: int,
                           gen_cfg: Any,
                           ray_err_txt: str = ''
                           ) -> tuple[bool, int]:
    """Start ray and reduce the number of workers if this fails."""
    if ray.is_initialized():
        return True, maxworkers
    while maxworkers >= 2:
        try:
            ray.init(num_cpus=maxworkers,
                     include_dashboard=False,
                     ignore_reinit_error=False,
                     )
            if gen_cfg is not None and gen_cfg.verbose:
                csf_ps.print_csf(gen_cfg,
                                 '\n' + f'Ray started with {maxworkers} workers',
                                 summary=False)
            return True, maxworkers

        except (OSError, RuntimeError):
            ray.shutdown()
            if maxworkers > 50:
                maxworkers = maxworkers // 2
            elif maxworkers > 10:
                maxworkers = round(maxworkers * 0.75)
            elif maxworkers > 5:
                maxworkers -= 2
            else:
                maxworkers -= 1
            if gen_cfg is not None and gen_cfg.verbose:
                txt = ('\n' + ray_err_txt
                       + f' Number of workers reduced to {maxworkers}')
                csf_ps.print_csf(gen_cfg, txt, summary=False)

    if gen_cfg is not None and gen_cfg.verbose:
        txt = ('\n' + ray_err_txt
               + 'RAY NOT USED. No multiprocessing. This will slow down '
               'execution')
        csf_ps.print_csf(gen_cfg, txt, summary=False)

    return False, 1


def shutdown_ray(int_cfg: Any) -> None:
    """Stop ray if requested, otherwise collect garbage if memory is short."""
    if int_cfg.mp_ray_shutdown:
        ray.shutdown()
    else:
        auto_garbage_collect(50)


def auto_garbage_collect(pct: float | int = 80.0) -> None:
    """
    Call garbage collector if memory used > pct% of total available memory.

    Ray does not always free up used memory between tasks.
    """
    if virtual_memory().percent >= pct:
        collect()
