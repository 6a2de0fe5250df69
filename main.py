import sys

from sf_trees.pipeline import PipelineRunner


def main() -> None:
    """Run the full SF street-trees classification pipeline."""
    config_path = sys.argv[1] if len(sys.argv) > 1 else "config/default.yaml"
    runner = PipelineRunner(config_path)
    runner.run()


if __name__ == "__main__":
    main()
