"""Task runners for scheduled and on-demand jobs.

Tasks are discovered by ``discover_and_register_tasks`` and registered through
the @job decorator. To add one, create a module in this directory:

    @job(
        "my_new_job",
        name="My New Job",
        description="Does something useful",
        interval_seconds=120,
    )
    class MyNewJobTask(BaseTask[MyJobResult]):
        async def _execute_impl(self, context: JobContext) -> List[MyJobResult]:
            ...
"""

__all__ = []
