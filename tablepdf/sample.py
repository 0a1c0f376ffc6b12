from __future__ import annotations

SAMPLE_FILENAME = 'test-table-export'

# Persian comparison table used for smoke-testing the export pipeline.
SAMPLE_TABLE_HTML = """
<table>
  <tr>
    <th>دسته‌بندی</th>
    <th>کریستیانو رونالدو (CR7)</th>
    <th>لیونل مسی</th>
  </tr>
  <tr>
    <td>تاریخ تولد</td>
    <td>5 فوریه 1985 (پرتغال)</td>
    <td>24 ژوئن 1987 (آرژانتین)</td>
  </tr>
  <tr>
    <td>قد</td>
    <td>187 سانتی‌متر</td>
    <td>170 سانتی‌متر</td>
  </tr>
  <tr>
    <td>گل‌های باشگاهی</td>
    <td>730 از بیش</td>
    <td>700 از بیش</td>
  </tr>
  <tr>
    <td>گل‌های ملی</td>
    <td>بیش از 120</td>
    <td>بیش از 100</td>
  </tr>
  <tr>
    <td>لیگ قهرمانان</td>
    <td>5 قهرمانی</td>
    <td>4 قهرمانی</td>
  </tr>
</table>
"""

SAMPLE_OPTIONS = {
    'orientation': 'landscape',
    'headerColor': '#333340',
    'oddRowColor': '#28282f',
    'evenRowColor': '#222228',
    'textColor': 'white',
}
