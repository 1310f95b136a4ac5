"""
writes the query catalogue out as a styled Excel workbook for people who
won't open the dashboard. one sheet per query plus a summary up front.
"""

import logging
import os

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.dataframe import dataframe_to_rows

logger = logging.getLogger(__name__)

SHEET_TITLES = {
    'overall_summary': 'Overall Summary',
    'top_recipients': 'Top Recipients',
    'upi_app_volume': 'UPI App Volume',
    'hourly_activity': 'Hourly Activity',
    'top_origin_states': 'Origin States',
    'age_bracket_activity': 'Age Brackets',
    'top_corridors': 'Transfer Corridors',
    'cohort_cumulative_spend': 'Cohort Spend',
    'daily_anomalies': 'Daily Anomalies',
}

ANOMALY_FILL = PatternFill(start_color='FEE2E2', end_color='FEE2E2', fill_type='solid')


def style_header(ws, row=1, cols=10):
    header_fill = PatternFill(start_color='1F4E79', end_color='1F4E79', fill_type='solid')
    header_font = Font(color='FFFFFF', bold=True, size=11)
    thin_border = Border(left=Side(style='thin'), right=Side(style='thin'),
                         top=Side(style='thin'), bottom=Side(style='thin'))
    for col in range(1, cols + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center')
        cell.border = thin_border


def _cell_value(value):
    # openpyxl can't write NaN/NaT or numpy scalars cleanly
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    if hasattr(value, 'item'):
        return value.item()
    return value


def write_frame(ws, df, start_row=1):
    for r_idx, row in enumerate(dataframe_to_rows(df, index=False, header=True), start_row):
        for c_idx, value in enumerate(row, 1):
            ws.cell(row=r_idx, column=c_idx, value=_cell_value(value))
    style_header(ws, row=start_row, cols=len(df.columns))
    for c_idx, col in enumerate(df.columns, 1):
        width = max([len(str(col))] + [len(str(v)) for v in df[col].head(200)]) + 2
        ws.column_dimensions[get_column_letter(c_idx)].width = min(width, 40)


def create_excel_report(results, output_path):
    wb = Workbook()

    # sheet 1: headline numbers
    ws1 = wb.active
    ws1.title = 'Executive Summary'
    ws1['A1'] = 'UPI Transaction Analytics Report'
    ws1['A1'].font = Font(size=16, bold=True, color='1F4E79')
    ws1['A3'] = 'Report Generated:'
    ws1['B3'] = pd.Timestamp.now().strftime('%Y-%m-%d %H:%M')

    kpis = []
    summary = results.get('overall_summary')
    if summary is not None and len(summary) > 0:
        row = summary.iloc[0]
        kpis += [
            ('Total Transactions', f"{int(row['total_txns']):,}"),
            ('Earliest Transaction', str(row['earliest_ts'])),
            ('Latest Transaction', str(row['latest_ts'])),
        ]
    anomalies = results.get('daily_anomalies')
    if anomalies is not None:
        kpis.append(('Anomalous Days (last 200)', f"{int((anomalies['flag'] == 'ANOMALY').sum())}"))
    apps = results.get('upi_app_volume')
    if apps is not None and len(apps) > 0:
        kpis.append(('Top UPI App by Volume', str(apps.iloc[0]['upi_app'])))
    for i, (label, value) in enumerate(kpis):
        ws1.cell(row=5 + i, column=1, value=label).font = Font(bold=True)
        ws1.cell(row=5 + i, column=2, value=value)
    ws1.column_dimensions['A'].width = 30
    ws1.column_dimensions['B'].width = 32

    # one sheet per query, in catalogue order
    for name, df in results.items():
        ws = wb.create_sheet(SHEET_TITLES.get(name, name)[:31])
        write_frame(ws, df)
        if name == 'daily_anomalies' and 'flag' in df.columns:
            flag_col = list(df.columns).index('flag') + 1
            for r_idx in range(2, len(df) + 2):
                if ws.cell(row=r_idx, column=flag_col).value == 'ANOMALY':
                    for c_idx in range(1, len(df.columns) + 1):
                        ws.cell(row=r_idx, column=c_idx).fill = ANOMALY_FILL
        ws.freeze_panes = 'A2'

    os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
    wb.save(output_path)
    logger.info("report saved: %s", output_path)
    return output_path
