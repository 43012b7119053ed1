from fastapi import Request

from upload_broker.services.uploads import UploadBroker


def get_upload_broker(request: Request) -> UploadBroker:
    return request.app.state.upload_broker
