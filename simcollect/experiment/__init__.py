from simcollect.experiment.executor import ExperimentExecutor, ExperimentSummary

__all__ = ["ExperimentExecutor", "ExperimentSummary"]
