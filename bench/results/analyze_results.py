import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
import os

RESULTS_DIR = os.path.dirname(os.path.abspath(__file__))
PLOTS_DIR = os.path.join(RESULTS_DIR, "plots")

# Load results
results_file = os.path.join(RESULTS_DIR, "benchmark_results.csv")
if not os.path.exists(results_file):
    print(f"Error: Results file not found: {results_file}")
    print("Run bench/run_benchmark.py first.")
    exit(1)

df = pd.read_csv(results_file)

# Clean data
for column in ['avg_time', 'min_time', 'max_time', 'stdev']:
    df[column] = pd.to_numeric(df[column], errors='coerce')

# Filter out rows with nan or zero times
df_clean = df.dropna(subset=['avg_time'])
df_clean = df_clean[df_clean['avg_time'] > 0].copy()

# Calculate throughput
df_clean['throughput_MBps'] = (df_clean['slice_size'] / (1024 * 1024)) / df_clean['avg_time']

# Create output directory
os.makedirs(PLOTS_DIR, exist_ok=True)

# Set plotting style
sns.set(style="whitegrid", palette="colorblind", font_scale=1.2)


def plot_scenario(scenario, title, xlabel, filename):
    plt.figure(figsize=(12, 7))
    scenario_df = df_clean[df_clean['scenario'] == scenario]
    if not scenario_df.empty:
        sns.lineplot(
            data=scenario_df,
            x="file_size_MB",
            y="avg_time",
            hue="impl",
            marker="o",
            linewidth=2.5
        )
        plt.title(title, fontsize=16)
        plt.xlabel(xlabel, fontsize=14)
        plt.ylabel("Execution Time (seconds)", fontsize=14)
        plt.yscale("log")  # Log scale for better visibility
        plt.xticks(sorted(df_clean['file_size_MB'].unique()))
        plt.legend(title="Block size", fontsize=12, title_fontsize=13)
        plt.tight_layout()
        plt.savefig(os.path.join(PLOTS_DIR, filename))
    plt.close()


# --- Plot 1: Execution time by file size (scenario: full_file) ---
plot_scenario("full_file", "Chunks Performance - Copying Entire File",
              "File Size (MB)", "time_by_file_size.png")

# --- Plot 2: Small range performance (1MB reads) ---
plot_scenario("small_start", "Performance Copying 1MB Range from Start",
              "Source File Size (MB)", "small_range_performance.png")

# --- Plot 3: Many chained ranges ---
plot_scenario("chained", "Performance Copying 256 Chained 64K Ranges",
              "Source File Size (MB)", "chained_ranges_performance.png")

# --- Plot 4: Throughput comparison (MB/s) across block sizes for 20MB chunk ---
plt.figure(figsize=(14, 8))
large_chunk_df = df_clean[df_clean['scenario'] == 'large_chunk']
if not large_chunk_df.empty:
    large_chunk_df = large_chunk_df.sort_values('throughput_MBps', ascending=False)
    sns.barplot(
        data=large_chunk_df,
        x="impl",
        y="throughput_MBps",
        hue="file_size_MB",
        palette="viridis",
        errorbar=None
    )
    plt.title("Throughput - 20MB Chunk", fontsize=16)
    plt.xlabel("Block size", fontsize=14)
    plt.ylabel("Throughput (MB/s)", fontsize=14)
    plt.legend(title="File Size (MB)", fontsize=12, title_fontsize=13)
    plt.tight_layout()
    plt.savefig(os.path.join(PLOTS_DIR, "throughput_comparison.png"))
plt.close()

# --- Create a summary table ---
print("\nPerformance Summary:")
print("-" * 80)

# Group by block size and scenario, and calculate mean metrics
summary = df_clean.groupby(['impl', 'scenario']).agg({
    'avg_time': ['mean', 'min', 'max'],
    'stdev': 'mean',
    'throughput_MBps': ['mean', 'max']
}).reset_index()

# Save summary to CSV
summary_file = os.path.join(RESULTS_DIR, "performance_summary.csv")
summary.to_csv(summary_file)
print(f"Summary saved to {summary_file}")

print("\nFastest block size per scenario:")
print("-" * 80)
per_scenario = df_clean.groupby(['scenario', 'impl'])['avg_time'].mean().reset_index()
print(per_scenario.loc[per_scenario.groupby('scenario')['avg_time'].idxmin()])

print(f"\nAnalysis complete. Plots saved to {PLOTS_DIR}")
