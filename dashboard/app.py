"""
Streamlit dashboard over the query catalogue. Run with: streamlit run dashboard/app.py
needs run_pipeline.py to have built the database first.
"""

import os
import sys
from contextlib import closing

import plotly.express as px
import plotly.graph_objects as go
import streamlit as st
from plotly.subplots import make_subplots

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from analytics import hourly_activity, run_all_queries
from config import DISPLAY_UTC_OFFSET_MINUTES, PipelineConfig
from db_utils import get_connection

st.set_page_config(page_title="UPI Transaction Analytics", page_icon="📊",
                   layout="wide", initial_sidebar_state="expanded")

st.markdown("""
<style>
    .main-header { font-size: 2.2rem; font-weight: 700; color: #1F4E79; margin-bottom: 0.5rem; }
    .sub-header  { font-size: 1.1rem; color: #6b7280; margin-bottom: 1.5rem; }
</style>
""", unsafe_allow_html=True)


@st.cache_data
def load_results(db_path):
    if not os.path.exists(db_path):
        st.error("No database found. Run the pipeline first.")
        st.stop()
    with closing(get_connection(db_path)) as conn:
        results = run_all_queries(conn)
        results['hourly_activity_local'] = hourly_activity(conn, DISPLAY_UTC_OFFSET_MINUTES)
    return results


def render_overview(results):
    st.markdown('<p class="main-header">Business Health</p>', unsafe_allow_html=True)
    summary = results['overall_summary'].iloc[0]
    st.markdown(f'<p class="sub-header">{summary["earliest_ts"]} to {summary["latest_ts"]}</p>',
                unsafe_allow_html=True)

    apps = results['upi_app_volume']
    c1, c2, c3 = st.columns(3)
    c1.metric("Total Transactions", f"{int(summary['total_txns']):,}")
    c2.metric("Top App Volume", f"Rs {apps['gross_volume'].max() / 1e7:.2f} Cr" if len(apps) else "-")
    c3.metric("Anomalous Days", int((results['daily_anomalies']['flag'] == 'ANOMALY').sum()))

    st.divider()
    left, right = st.columns([2, 1])
    with left:
        top = results['top_recipients']
        fig = px.bar(top, x='recipient_id', y='gross_volume', hover_data=['no_of_trans', 'avg_amount'],
                     title='Top 20 Recipients by Gross Volume',
                     color='gross_volume', color_continuous_scale='Blues')
        fig.update_layout(height=400)
        st.plotly_chart(fig, use_container_width=True)
    with right:
        fig = px.pie(apps, values='gross_volume', names='upi_app', title='Volume by UPI App',
                     color_discrete_sequence=px.colors.qualitative.Set2, hole=0.4)
        fig.update_layout(height=400)
        st.plotly_chart(fig, use_container_width=True)


def render_activity(results):
    st.markdown('<p class="main-header">Activity Patterns</p>', unsafe_allow_html=True)
    left, right = st.columns(2)
    with left:
        hourly = results['hourly_activity_local'].sort_values('hour')
        fig = make_subplots(specs=[[{"secondary_y": True}]])
        fig.add_trace(go.Bar(x=hourly['hour'], y=hourly['no_of_trans'],
                             name='Transactions', marker_color='#667eea'), secondary_y=False)
        fig.add_trace(go.Scatter(x=hourly['hour'], y=hourly['gross_volume'],
                                 name='Volume (Rs)', line=dict(color='#f093fb', width=2)), secondary_y=True)
        fig.update_layout(title='Hour-of-day Activity (IST)', height=400, template='plotly_white',
                          xaxis_title='hour (IST)')
        st.plotly_chart(fig, use_container_width=True)
    with right:
        states = results['top_origin_states']
        fig = px.bar(states, x='gross_volume', y='from_state', orientation='h',
                     title='Top Origin States by Volume',
                     color='gross_volume', color_continuous_scale='Viridis')
        fig.update_layout(height=400, yaxis={'categoryorder': 'total ascending'})
        st.plotly_chart(fig, use_container_width=True)

    ages = results['age_bracket_activity']
    c1, c2 = st.columns(2)
    with c1:
        fig = px.bar(ages, x='age_bracket', y='avg_trans_per_user',
                     title='Avg Transactions per User by Age Bracket')
        st.plotly_chart(fig, use_container_width=True)
    with c2:
        fig = px.bar(ages, x='age_bracket', y='avg_trans_amount',
                     title='Avg Transaction Amount by Age Bracket', color_discrete_sequence=['#f5576c'])
        st.plotly_chart(fig, use_container_width=True)


def render_cohorts(results):
    st.markdown('<p class="main-header">Cohort Cumulative Spend</p>', unsafe_allow_html=True)
    cohorts = results['cohort_cumulative_spend'].dropna(subset=['cohort_month']).copy()
    cohorts['cohort_month'] = cohorts['cohort_month'].astype(str)
    fig = px.line(cohorts.sort_values(['cohort_month', 'month']), x='month', y='cumulative_spend',
                  color='cohort_month', markers=True, title='Cumulative Spend by First-Transaction Month')
    fig.update_layout(height=450, template='plotly_white')
    st.plotly_chart(fig, use_container_width=True)
    st.dataframe(results['cohort_cumulative_spend'], use_container_width=True)


def render_anomalies(results):
    st.markdown('<p class="main-header">Daily Volume Anomalies</p>', unsafe_allow_html=True)
    st.info("A day is flagged when its volume is more than 3 standard deviations away from "
            "the mean of the previous 30 days.")
    daily = results['daily_anomalies'].sort_values('day')
    spikes = daily[daily['flag'] == 'ANOMALY']
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=daily['day'], y=daily['daily_volume'], name='Daily Volume',
                             line=dict(color='#667eea', width=2)))
    fig.add_trace(go.Scatter(x=daily['day'], y=daily['roll_mean'], name='30-day Mean',
                             line=dict(color='#94a3b8', width=2, dash='dot')))
    fig.add_trace(go.Scatter(x=spikes['day'], y=spikes['daily_volume'], name='Anomaly',
                             mode='markers', marker=dict(color='#ef4444', size=10)))
    fig.update_layout(height=450, template='plotly_white')
    st.plotly_chart(fig, use_container_width=True)
    st.dataframe(spikes, use_container_width=True)


def render_corridors(results):
    st.markdown('<p class="main-header">Top Transfer Corridors</p>', unsafe_allow_html=True)
    corridors = results['top_corridors'].copy()
    corridors['corridor'] = corridors['payer_id'].fillna('?') + ' → ' + corridors['payee_id'].fillna('?')
    fig = px.bar(corridors.head(25), x='total_amt', y='corridor', orientation='h',
                 hover_data=['count'], title='Strongest Payer → Payee Connections',
                 color='total_amt', color_continuous_scale='Reds')
    fig.update_layout(height=600, yaxis={'categoryorder': 'total ascending'})
    st.plotly_chart(fig, use_container_width=True)
    st.download_button("Download Corridors CSV", corridors.to_csv(index=False),
                       "top_corridors.csv", "text/csv")


def main():
    st.sidebar.title("UPI Transaction Analytics")
    st.sidebar.divider()
    page = st.sidebar.radio("Navigate", [
        'Business Health',
        'Activity Patterns',
        'Cohorts',
        'Anomalies',
        'Corridors',
    ])

    config = PipelineConfig.from_env()
    results = load_results(config.db_path)
    st.sidebar.caption(f"database: {config.db_path}")

    if page == 'Business Health':     render_overview(results)
    elif page == 'Activity Patterns': render_activity(results)
    elif page == 'Cohorts':           render_cohorts(results)
    elif page == 'Anomalies':         render_anomalies(results)
    elif page == 'Corridors':         render_corridors(results)


if __name__ == '__main__':
    main()
