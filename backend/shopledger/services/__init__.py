# Overview: Service layer; business logic and database work live here, routes stay thin.
