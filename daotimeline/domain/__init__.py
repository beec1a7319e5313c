"""Pure timeline logic: adapters, aggregation, pipeline and export."""
