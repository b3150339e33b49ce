"""
Contains the functions needed for printing and describing results.

Created on Mon Oct 19 09:20:03 2026
# -*- coding: utf-8 -*-
"""
from datetime import datetime, timedelta
from typing import Any

import numpy as np
from numpy.typing import NDArray
from pandas import DataFrame
import pandas as pd


def print_csf(gen_cfg: Any, *strings: Any, summary: bool = False,
              non_summary: bool = True) -> None:
    """Print output to different files and terminal."""
    if gen_cfg is None or not gen_cfg.with_output:
        return
    if gen_cfg.print_to_terminal:
        print(*strings)
    if gen_cfg.print_to_file:
        if non_summary and gen_cfg.outfiletext is not None:
            print_f(gen_cfg.outfiletext, *strings)
        if summary and gen_cfg.outfilesummary is not None:
            print_f(gen_cfg.outfilesummary, *strings)


def print_f(file_to_print_to, *strings):
    """
    Print strings into file (substitute print function).

    Parameters
    ----------
    file_to_print_to : Path or String.
        Name of file to print to.
    *strings : Non-keyword arguments.

    Returns
    -------
    None.

    """
    with open(file_to_print_to, mode="a", encoding="utf-8") as file:
        file.write('\n')
        for text in strings:
            file.write(text if isinstance(text, str) else str(text))


def print_dic(dic: dict, dic_name: str, gen_cfg: Any,
              summary: bool = False) -> None:
    """Print dictionary in a simple way."""
    print_csf(gen_cfg, '\n' + dic_name, '\n' + '- ' * 50, summary=summary)
    for keys, values in dic.items():
        if isinstance(values, (list, tuple)):
            sss = [str(x) for x in values]
            print_csf(gen_cfg, keys, ':  ', ' '.join(sss), summary=summary)
        else:
            print_csf(gen_cfg, keys, ':  ', values, summary=summary)


def print_timing(gen_cfg: Any, title: str, text: list[str],
                 time_diff: list[float], summary: bool = False) -> str:
    """Show date and duration of a programme and its different parts."""
    print_str = '\n' + '-' * 100 + '\n'
    print_str += f'{title} executed at: {datetime.now()}\n' + '- ' * 50
    for txt, diff in zip(text, time_diff):
        print_str += '\n' + f'{txt} {timedelta(seconds=diff)}'
    print_str += '\n' + '-' * 100
    print_csf(gen_cfg, print_str, summary=summary)
    return print_str


def share_completed(current: int, total: int) -> None:
    """Count how much of a task is completed and print to terminal.

    Parameters
    ----------
    current : INT. No of tasks completed.
    total : INT. Total number of tasks.

    Returns
    -------
    None.

    """
    if current == 1:
        print("\nShare completed (%):", end=" ")
    share = current / total * 100
    if total < 20:
        print(f'{share:4.0f}', end=" ", flush=True)
    else:
        points_to_print = range(1, total, round(total / 20))
        if current in points_to_print:
            print(f'{share:4.0f}', end=" ", flush=True)
    if current == total:
        print('Task completed')


def print_prediction_summary(gen_cfg: Any, estimates: NDArray[np.floating],
                             variances: NDArray[np.floating] | None,
                             title: str = 'Prediction',
                             summary: bool = True) -> None:
    """Describe distribution of point estimates and standard errors."""
    available = ~np.isnan(estimates)
    txt = '\n' + '-' * 100 + f'\n{title}: causal survival effects'
    txt += f'\nNumber of observations:               {len(estimates):<8}'
    txt += f'\nObservations with a prediction:       {int(available.sum()):<8}'
    if available.any():
        est = estimates[available]
        txt += ('\nEffect (mean / median / std):         '
                f'{np.mean(est):10.4f} {np.median(est):10.4f} '
                f'{np.std(est):10.4f}')
        txt += ('\nEffect (min / max):                   '
                f'{np.min(est):10.4f} {np.max(est):10.4f}')
    if variances is not None:
        var_ok = ~np.isnan(variances)
        if var_ok.any():
            s_e = np.sqrt(variances[var_ok])
            txt += ('\nStandard error (mean / median):       '
                    f'{np.mean(s_e):10.4f} {np.median(s_e):10.4f}')
    txt += '\n' + '-' * 100
    print_csf(gen_cfg, txt, summary=summary)


def print_descriptive_df(gen_cfg: Any, data_df: DataFrame,
                         varnames: list[str] | str = 'all',
                         summary: bool = False) -> None:
    """Print descriptive statistics of a DataFrame."""
    data_sel = data_df[varnames] if varnames != 'all' else data_df
    desc_stat = data_sel.describe()
    if (varnames == 'all') or len(varnames) > 10:
        to_print = desc_stat.transpose()
    else:
        to_print = desc_stat
    with pd.option_context(
            'display.max_rows', 500, 'display.max_columns', 500,
            'display.expand_frame_repr', True, 'display.width', 150,
            'chop_threshold', 1e-13):
        print_csf(gen_cfg, to_print, summary=summary)
