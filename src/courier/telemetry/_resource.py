def _inject_otel_resource_attributes(resource: dict, metadata: dict) -> dict:
    enriched = dict(resource)
    enriched.update(
        {
            "service.name": metadata["service_name"],
            "courier.process.pid": metadata["pid"],
            "courier.process.host.name": metadata["host_name"],
            "courier.process.start_time": metadata["start_time"],
        }
    )
    return enriched
